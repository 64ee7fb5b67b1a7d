from client.channel import ClientChannel
from schemas.messages import AudioCommand


class ClientAudio:
    """Birthday melody and sound cues, synthesized in the browser."""

    def __init__(self, channel: ClientChannel):
        self.channel = channel
        self.playing = False

    def play(self) -> None:
        self.playing = True
        self.channel.send(AudioCommand(action="play", sound="melody"))

    def stop(self) -> None:
        if not self.playing:
            return
        self.playing = False
        self.channel.send(AudioCommand(action="stop", sound="melody"))

    def cue(self, sound: str) -> None:
        self.channel.send(AudioCommand(action="cue", sound=sound))
