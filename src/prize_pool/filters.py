from django_filters import rest_framework as filters

from prize_pool.models import DistributionRecord


class DistributionRecordFilter(filters.FilterSet):
    # Stored checksummed; wallets often arrive lowercased
    recipient_address = filters.CharFilter(lookup_expr="iexact")

    class Meta:
        model = DistributionRecord
        fields = ["hackathon", "job", "status", "recipient_address"]
