from __future__ import annotations

from cert_dashboard.config import AppConfig
from cert_dashboard.detectors.base import Detector
from cert_dashboard.detectors.rapid_completions import RapidCompletionsDetector
from cert_dashboard.detectors.suspicious_accounts import SuspiciousAccountsDetector


def default_detectors(config: AppConfig) -> list[Detector]:
    return [
        SuspiciousAccountsDetector(disposable_domains=config.fraud.disposable_domains),
        RapidCompletionsDetector(hours=config.metrics.rapid_completion_hours),
    ]
