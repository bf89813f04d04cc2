"""HTTP surface of the POS service. The app factory lives in `pos.api.application`."""
