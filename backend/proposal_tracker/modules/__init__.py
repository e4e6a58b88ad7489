"""
Bounded-context modules.

Routers call application services within modules rather than directly
invoking repositories or infrastructure adapters.
"""
