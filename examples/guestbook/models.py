"""
Entities for the TierCache guestbook example.
"""

from __future__ import annotations

from tiercache.core import DateTimeField, Entity, IntegerField, ParentField, StringField


class Guestbook(Entity):
    name = StringField(primary_key=True, max_length=80)
    title = StringField(nullable=False, max_length=200)


class Visitor(Entity):
    handle = StringField(nullable=False, max_length=80)
    visits = IntegerField(default=0)


class Greeting(Entity):
    book = ParentField()
    author = StringField(nullable=True)
    content = StringField(nullable=False, max_length=500)
    created = DateTimeField(auto_now_add=True)
