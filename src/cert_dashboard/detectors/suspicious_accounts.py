from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

import pandas as pd

from cert_dashboard.config import DEFAULT_DISPOSABLE_DOMAINS
from cert_dashboard.detectors.base import Detector, DetectorResult
from cert_dashboard.features.aggregates import records_frame
from cert_dashboard.models import DeveloperRecord

NUMERIC_LOCAL_PART_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class SuspiciousAccounts:
    count: int
    percentage: float


def _split_ids(ids: pd.Series) -> tuple[pd.Series, pd.Series]:
    parts = ids.fillna("").astype(str).str.strip().str.split("@", n=1)
    local = parts.str[0].fillna("")
    domain = parts.str[1].fillna("")
    return local, domain


class SuspiciousAccountsDetector(Detector):
    """
    Flag identifiers that look like throwaway or alias accounts.

    A record is flagged when its email domain is on the disposable denylist,
    its local part carries a ``+`` alias, or its local part is all digits.
    Identifiers without a domain are never flagged.
    """

    name = "suspicious_accounts"

    def __init__(self, disposable_domains: Iterable[str] | None = None) -> None:
        domains = DEFAULT_DISPOSABLE_DOMAINS if disposable_domains is None else disposable_domains
        self.disposable_domains = {str(value).strip().lower() for value in domains if value}

    def run(self, df: pd.DataFrame) -> DetectorResult:
        if df.empty:
            return DetectorResult(
                detector=self.name,
                summary={"count": 0, "percentage": 0.0, "n_records": 0},
                tables={"flagged_accounts": pd.DataFrame(columns=["developer_id", "reasons"])},
                record_flags=pd.Series(dtype=bool),
            )

        local, domain = _split_ids(df["developer_id"])
        has_domain = domain != ""
        disposable = has_domain & domain.str.lower().isin(self.disposable_domains)
        alias = has_domain & local.str.contains("+", regex=False)
        numeric = has_domain & local.map(
            lambda value: bool(NUMERIC_LOCAL_PART_RE.fullmatch(value))
        )
        flags = disposable | alias | numeric

        reason_masks = pd.DataFrame(
            {
                "disposable_domain": disposable,
                "plus_alias": alias,
                "numeric_local_part": numeric,
            }
        )
        flagged = df.loc[flags, ["developer_id", "community_code"]].copy()
        flagged["reasons"] = [
            ",".join(label for label, hit in row.items() if hit)
            for _, row in reason_masks[flags].iterrows()
        ]

        count = int(flags.sum())
        return DetectorResult(
            detector=self.name,
            summary={
                "count": count,
                "percentage": (count / len(df)) * 100.0,
                "n_records": int(len(df)),
            },
            tables={"flagged_accounts": flagged.reset_index(drop=True)},
            record_flags=flags,
        )


def flag_suspicious_accounts(
    records: Sequence[DeveloperRecord],
    disposable_domains: Iterable[str] | None = None,
) -> SuspiciousAccounts:
    result = SuspiciousAccountsDetector(disposable_domains).run(records_frame(records))
    return SuspiciousAccounts(
        count=int(result.summary["count"]),
        percentage=float(result.summary["percentage"]),
    )
