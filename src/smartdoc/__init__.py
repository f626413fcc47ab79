"""SmartDoc — upload documents and ask questions answered from them."""

__version__ = "0.1.0"
