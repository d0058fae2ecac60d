from collections import Counter
from typing import Dict, List

from funnel_analytics.domain.events import EventKind, EventRecord, kind_set
from funnel_analytics.domain.models import MetricBlock

from .base import ExtractionContext, Extractor, user_cohorts


def _cap(method: str) -> str:
    return method[:1].upper() + method[1:]


class SignupsExtractor(Extractor):
    """Signups by method, by raw vs. distinct-user count and by identity class.

    Distinct users are counted once across all methods, under the method of
    their first signup in the window, so unique totals add up the same way raw
    totals do.
    """

    name = "signups"
    kinds = kind_set(EventKind.SIGNUP, EventKind.SIGNUP_CLICK)

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        methods = list(context.signup_methods)
        signups = [e for e in events if e.kind == EventKind.SIGNUP]
        cohorts = user_cohorts(signups)

        raw: Counter = Counter()
        raw_anonymous: Counter = Counter()
        first_method: Dict[str, str] = {}
        skipped = 0
        for event in signups:
            method = str(event.prop("method") or "").lower()
            if method not in methods:
                skipped += 1
                continue
            raw[method] += 1
            if cohorts[event.user_id]:
                raw_anonymous[method] += 1
            first_method.setdefault(event.user_id, method)

        if skipped:
            self.logger.debug(
                "signups_with_unknown_method_skipped", extra={"count": skipped}
            )

        unique = Counter(first_method.values())
        unique_anonymous = Counter(
            method for user, method in first_method.items() if cohorts[user]
        )

        data: Dict[str, int] = {}
        for method in methods:
            data[f"{method}Signups"] = raw[method]
            data[f"unique{_cap(method)}Signups"] = unique[method]
            data[f"anonymous{_cap(method)}Signups"] = raw_anonymous[method]
            data[f"nonAnonymous{_cap(method)}Signups"] = raw[method] - raw_anonymous[method]

        total = sum(raw.values())
        anonymous_total = sum(raw_anonymous.values())
        unique_total = len(first_method)
        unique_anonymous_total = sum(unique_anonymous.values())
        data.update(
            {
                "totalSignups": total,
                "uniqueTotalSignups": unique_total,
                "anonymousTotalSignups": anonymous_total,
                "nonAnonymousTotalSignups": total - anonymous_total,
                "uniqueAnonymousTotalSignups": unique_anonymous_total,
                "uniqueNonAnonymousTotalSignups": unique_total - unique_anonymous_total,
                "signupClicks": sum(
                    1 for e in events if e.kind == EventKind.SIGNUP_CLICK
                ),
            }
        )
        return MetricBlock(name=self.name, data=data)
