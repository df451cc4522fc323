"""
Executor Application Layer

Parameter DTOs and the dispatch service.
"""
