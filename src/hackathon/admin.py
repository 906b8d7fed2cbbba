from django.contrib import admin

from hackathon.models import Hackathon, HackathonWinner


class HackathonWinnerInline(admin.TabularInline):
    model = HackathonWinner
    extra = 0
    readonly_fields = ("rank", "wallet_address", "prize_amount")


@admin.register(Hackathon)
class HackathonAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "title",
        "status",
        "prize_amount",
        "is_deposited",
        "is_distributed",
        "refund_required",
    )
    list_filter = ("status", "is_deposited", "is_distributed", "refund_required")
    search_fields = ("title", "organizer_address")
    inlines = [HackathonWinnerInline]
