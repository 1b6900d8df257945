# ledger/managers.py
from django.db import models

UNSET = object()


class UserScopedManager(models.Manager):
    def for_user(self, user, business=UNSET):
        """
        Rows owned by ``user``.

        ``business`` narrows the scope: ``None`` keeps personal rows only,
        a business (or its id) keeps that business's rows, and leaving it
        unset returns every row of the user.
        """
        qs = self.filter(user=user)
        if business is not UNSET:
            qs = qs.filter(business=business)
        return qs


class BusinessScopedManager(models.Manager):
    def for_user(self, user, business=UNSET):
        qs = self.filter(business__user=user)
        if business is not UNSET:
            qs = qs.filter(business=business)
        return qs
