"""Arbitrator-side view of one participant."""

import logging
from typing import Optional, Union

from ..network.channel import ChannelEndpoint
from ..protocol.messages import FloorMessage
from ..protocol.rtp import RTPPacket

logger = logging.getLogger("mcptt.arbitrator")


class TowardsParticipant:
    """
    Roster entry kept by the arbitrator for a remote participant.

    Holds the link towards the client plus what the arbitrator knows about
    it: the priority it last requested with, whether it may only receive,
    and whether it has completed call initialisation.
    """

    def __init__(
        self,
        ssrc: int,
        port: Optional[ChannelEndpoint] = None,
        priority: int = 0,
        receive_only: bool = False,
    ):
        self.ssrc = ssrc
        self.port = port
        self.priority = priority
        self.receive_only = receive_only
        self.is_ready = False

    def send(self, message: Union[FloorMessage, RTPPacket]) -> bool:
        if self.port is None:
            logger.debug(f"SSRC {self.ssrc} has no link, dropping {message}")
            return False
        return self.port.send(message)

    def close(self) -> None:
        if self.port is not None:
            self.port.close()

    def __repr__(self) -> str:
        return f"TowardsParticipant(ssrc={self.ssrc}, ready={self.is_ready})"
