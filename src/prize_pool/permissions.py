from utils.permissions import AuthorizationBasedPermission


class IsDistributionAdmin(AuthorizationBasedPermission):
    """
    Staff accounts with a wallet address on file. The wallet address is
    what admin actions are attributed to in the audit trail.
    """

    message = "Only distribution admins can use emergency controls."

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.is_distribution_admin

    def is_authorized(self, request, view, obj):
        return self.has_permission(request, view)
