from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from user.models import User


@admin.register(User)
class HackhubUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (("Wallet", {"fields": ("wallet_address",)}),)
    list_display = ("username", "email", "wallet_address", "is_staff")
    search_fields = ("username", "email", "wallet_address")
