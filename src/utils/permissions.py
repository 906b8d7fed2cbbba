from rest_framework.permissions import SAFE_METHODS, BasePermission


class AuthorizationBasedPermission(BasePermission):
    class Meta:
        abstract = True

    def has_object_permission(self, request, view, obj):
        return self.is_read_only_request(request) or self.is_authorized(
            request, view, obj
        )

    def is_read_only_request(self, request):
        return request.method in SAFE_METHODS

    def is_authorized(self, request, view, obj):
        raise NotImplementedError
