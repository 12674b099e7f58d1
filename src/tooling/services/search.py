"""Cross-entity search and dashboard figures."""

from django.db.models import Count, Q, Sum

from ..models import Family, Holder, Rob
from .records import FAMILIES, HOLDERS, ROBS

MAX_SEARCH_WORDS = 20

SEARCH_MODELS = [
    (FAMILIES, Family),
    (HOLDERS, Holder),
    (ROBS, Rob),
]


def build_text_query(q):
    """Build Q object matching all words in q against name or code.

    Words are ANDed together; at most ``MAX_SEARCH_WORDS`` are considered.
    An empty query matches everything.
    """
    combined = Q()
    for word in q.split()[:MAX_SEARCH_WORDS]:
        combined &= Q(name__icontains=word) | Q(code__icontains=word)
    return combined


def search_entities(query="", statuses=None, entity_type=None):
    """Search families, holders and ROBs in that order.

    Returns a list of ``(entity_type, instance)`` pairs. ``statuses``
    limits results to those status values; ``entity_type`` limits the
    search to one of ``families``, ``holders`` or ``robs``.
    """
    if entity_type is not None and entity_type not in dict(SEARCH_MODELS):
        raise ValueError(f"Unknown entity type '{entity_type}'")

    text_q = build_text_query(query or "")
    results = []
    for name, model in SEARCH_MODELS:
        if entity_type is not None and name != entity_type:
            continue
        queryset = model.objects.filter(text_q)
        if statuses:
            queryset = queryset.filter(status__in=list(statuses))
        results.extend((name, instance) for instance in queryset)
    return results


def get_kpis():
    """Headline counts for the dashboard."""
    families = Family.objects.aggregate(
        total=Count("pk"),
        active=Count("pk", filter=Q(status="active")),
        holders=Sum("total_holders"),
    )
    robs = Rob.objects.aggregate(load=Sum("current_load"), capacity=Sum("capacity"))
    load = robs["load"] or 0
    capacity = robs["capacity"] or 0
    by_type = dict(
        Rob.objects.values_list("type").annotate(n=Count("pk")).order_by("type")
    )
    return {
        "total_families": families["total"],
        "active_families": families["active"],
        "total_holders": families["holders"] or 0,
        "rob_utilization": round(load / capacity * 100) if capacity else 0,
        "robs_by_type": {
            value: by_type.get(value, 0) for value, _ in Rob.TYPE_CHOICES
        },
    }
