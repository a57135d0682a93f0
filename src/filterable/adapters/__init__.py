"""Collaborator implementations.

``filterable.adapters.memory`` has no extra dependencies;
``filterable.adapters.redis`` needs ``redis`` and
``filterable.adapters.sqlalchemy`` needs ``sqlalchemy``.
"""
