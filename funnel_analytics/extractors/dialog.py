from typing import List

from funnel_analytics.domain.events import EventKind, EventRecord, kind_set
from funnel_analytics.domain.models import MetricBlock
from funnel_analytics.domain.rates import percentage

from .base import FUNNEL_KINDS, ExtractionContext, Extractor, funnel_stages, users_with


class DialogClosesExtractor(Extractor):
    name = "dialogCloses"
    kinds = FUNNEL_KINDS | kind_set(EventKind.DIALOG_CLOSE)

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        closes = sum(1 for e in events if e.kind == EventKind.DIALOG_CLOSE)
        closers = users_with(events, EventKind.DIALOG_CLOSE)
        visitors = len(funnel_stages(events).visitors)
        return MetricBlock(
            name=self.name,
            data={
                "dialogCloses": closes,
                "uniqueDialogCloses": len(closers),
                "uniqueVisitors": visitors,
                "dialogCloseConversionRate": percentage(len(closers), visitors),
            },
        )
