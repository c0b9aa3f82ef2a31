"""
Factory Boy factories for notification models.

Usage:
    from notifications.tests.factories import NotificationFactory

    notification = NotificationFactory(recipient=user)
    notification = NotificationFactory(recipient=user, idempotency_key="order:paid")
"""

import factory

from authentication.tests.factories import UserFactory


class NotificationFactory(factory.django.DjangoModelFactory):
    """
    Factory for Notification model.

    By default creates an unread, undelivered notification without an
    idempotency key.
    """

    class Meta:
        model = "notifications.Notification"

    recipient = factory.SubFactory(UserFactory)
    title = factory.Faker("sentence", nb_words=5)
    message = factory.Faker("paragraph", nb_sentences=2)
    action_link = ""
    data = factory.LazyFunction(dict)
    idempotency_key = None
    is_read = False
    delivery_status = "pending"
