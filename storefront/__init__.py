"""Storefront catalog core.

Local SQLite cache of the upstream product catalog: the filter/sort/page
query builder, the read repository, and the replace-all synchronizer.
"""
