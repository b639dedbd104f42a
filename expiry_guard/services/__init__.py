from expiry_guard.services.results import MutationResult

__all__ = ["MutationResult"]
