"""federated-ingress-dns - DNS records for federated ingresses."""

__version__ = "0.1.0"
