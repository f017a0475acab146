"""Communication helpers exported for external modules."""

from .udp import UdpCommunicationError, UdpReceiver, UdpSocket, resolve_endpoint

__all__ = [
	"UdpCommunicationError",
	"UdpReceiver",
	"UdpSocket",
	"resolve_endpoint",
]
