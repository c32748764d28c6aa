from __future__ import annotations


class DomainError(Exception):
    """Base para erros de dominio."""


class CustomerBillingInputError(DomainError):
    """Email do cliente ausente ou invalido."""


class UpstreamProviderError(DomainError):
    """Falha ao consultar o provedor de pagamentos."""


class BillingInputError(DomainError):
    """Parametros invalidos para checkout ou cadastro de produto."""


class BillingError(DomainError):
    """Falha ao criar recursos no provedor ou ao persistir eventos de cobranca."""


class WebhookSignatureError(DomainError):
    """Payload de webhook nao pode ser verificado."""
