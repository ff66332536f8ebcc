"""Application services — registry, message verification and settlement."""

from fast_withdrawals.services.market_maker_service import MarketMakerService
from fast_withdrawals.services.registry_service import RegistryEntry, RegistryService
from fast_withdrawals.services.verification_service import VerificationService

__all__ = ["MarketMakerService", "RegistryEntry", "RegistryService", "VerificationService"]
