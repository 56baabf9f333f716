"""
RTP media packets.

Media bursts relayed under floor control. The sending participant stamps
its SSRC into the header; the arbitrator relays packets only from the
current floor holder(s).
"""

import struct
from dataclasses import dataclass, replace

RTP_HEADER_SIZE = 12
RTP_VERSION = 2


@dataclass
class RTPPacket:
    """RTP packet (fixed header plus payload)."""
    ssrc: int = 0
    sequence_number: int = 0
    timestamp: int = 0
    payload_type: int = 0
    marker: bool = False
    payload: bytes = b""
    version: int = RTP_VERSION

    @classmethod
    def parse(cls, data: bytes) -> 'RTPPacket':
        """
        Parse raw bytes into an RTPPacket.

        Args:
            data: Raw packet data (minimum 12 bytes for RTP header)

        Returns:
            Parsed RTPPacket instance

        Raises:
            ValueError: If packet is too small or malformed
        """
        if len(data) < RTP_HEADER_SIZE:
            raise ValueError(f"Packet too small: {len(data)} bytes (minimum {RTP_HEADER_SIZE})")

        first_byte, second_byte = data[0], data[1]

        version = (first_byte >> 6) & 0x03
        if version != RTP_VERSION:
            raise ValueError(f"Invalid RTP version: {version} (expected {RTP_VERSION})")

        csrc_count = first_byte & 0x0F
        header_size = RTP_HEADER_SIZE + (csrc_count * 4)
        if len(data) < header_size:
            raise ValueError(f"Packet too small for header: {len(data)} < {header_size}")

        sequence_number, timestamp, ssrc = struct.unpack('!HII', data[2:12])

        return cls(
            ssrc=ssrc,
            sequence_number=sequence_number,
            timestamp=timestamp,
            payload_type=second_byte & 0x7F,
            marker=bool((second_byte >> 7) & 0x01),
            payload=data[header_size:],
            version=version,
        )

    def to_bytes(self) -> bytes:
        """Serialize with a fixed 12-byte header (no CSRC, padding or extension)."""
        first_byte = (self.version & 0x03) << 6
        second_byte = (int(self.marker) << 7) | (self.payload_type & 0x7F)
        header = struct.pack(
            '!BBHII',
            first_byte,
            second_byte,
            self.sequence_number & 0xFFFF,
            self.timestamp & 0xFFFFFFFF,
            self.ssrc & 0xFFFFFFFF,
        )
        return header + self.payload

    def with_ssrc(self, ssrc: int) -> 'RTPPacket':
        """Copy of this packet stamped with the sender's SSRC."""
        return replace(self, ssrc=ssrc)

    def __len__(self) -> int:
        return RTP_HEADER_SIZE + len(self.payload)
