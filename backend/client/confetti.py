from client.channel import ClientChannel
from schemas.messages import ConfettiCommand


class ClientConfetti:
    def __init__(self, channel: ClientChannel):
        self.channel = channel

    def burst(self, intensity: int) -> None:
        self.channel.send(ConfettiCommand(count=intensity))
