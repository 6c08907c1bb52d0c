"""API package.

This exposes router modules to simplify test imports like:
	from prompt_manager.api.routes.stripe_webhooks import router
"""

__all__ = [
	"routes",
]
