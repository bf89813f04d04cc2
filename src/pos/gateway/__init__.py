"""Payment gateway factory.

build_gateway() selects the adapter from settings:
- FakeGateway for development and testing
- MidtransGateway for sandbox and production

Adapters are imported on demand so that loading any single gateway module
never pulls in its siblings.
"""

from pos.config import Settings


def build_gateway(settings: Settings):
    """Construct the gateway configured by `settings`."""
    if settings.payment_gateway == "midtrans":
        from pos.gateway.midtrans_adapter import MidtransGateway

        return MidtransGateway(
            server_key=settings.midtrans_server_key,
            environment=settings.midtrans_environment,
            default_timeout=settings.gateway_timeout_seconds,
        )
    if settings.payment_gateway == "fake":
        from pos.gateway.fake_adapter import FakeGateway

        return FakeGateway()
    raise ValueError(f"Unknown payment gateway '{settings.payment_gateway}'")
