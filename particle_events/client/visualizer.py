"""
MODULE OVERVIEW:
The Rich terminal dashboard for a live event stream.

WHAT IS HAPPENING HERE:
The dashboard subscribes to the stream's catch-all `event` channel and to every
lifecycle signal, keeps the last few of each, and redraws a Layout four times a
second until the requested duration is over or the session is aborted.
"""

from rich.live import Live
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from collections import deque
from datetime import datetime
import asyncio

from particle_events.client.event_stream import EventStream
from particle_events.shared.models import ParsedEvent, StreamSignal, StreamState

STATE_COLORS = {
    StreamState.STREAMING: "green",
    StreamState.CONNECTING: "yellow",
    StreamState.RECONNECTING: "yellow",
    StreamState.ENDED: "yellow",
}

class Visualizer:
    def __init__(self, stream: EventStream):
        self.stream = stream
        self.recent_events = deque(maxlen=10)
        self.timeline = deque(maxlen=6)

    def on_signal(self, signal: StreamSignal, detail: str = ""):
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] {signal.value} {detail}".rstrip())

    def on_event(self, event: ParsedEvent):
        ts = datetime.now().strftime("%H:%M:%S")
        extra = event.model_extra or {}
        payload_str = str(extra.get("data", extra))
        if len(payload_str) > 40:
            payload_str = payload_str[:40] + "..."
        self.recent_events.appendleft((ts, event.name, payload_str, str(extra.get("coreid", "-"))))

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="timeline")
        )

        state = self.stream.state
        color = STATE_COLORS.get(state, "red")
        layout["header"].update(Panel(f"[{color} bold]{self.stream.uri} | State: {state.value}[/]", style=color))

        table = Table(title="Live Event Feed", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Name", style="magenta")
        table.add_column("Data", style="green")
        table.add_column("Device", style="blue")

        for e in self.recent_events:
            table.add_row(*e)

        layout["left"].update(Panel(table, title="Feed"))

        stats = self.stream.stats
        stats_text = (
            f"Events Received: {stats['events_received']}\n"
            f"Reconnects: {stats['reconnect_count']}\n"
            f"Bytes Received: {stats['bytes_received']}\n"
            f"Last Event: {stats['last_event_at'] or '-'}"
        )
        layout["stats"].update(Panel(stats_text, title="Stream Stats"))
        layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))

        return layout

    def attach(self):
        self.stream.on("event", self.on_event)
        for signal in StreamSignal:
            self.stream.on(signal, lambda *args, s=signal: self.on_signal(s, str(args[0]) if args else ""))

    async def run(self, duration_s: float):
        self.attach()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration_s

        with Live(self.generate_layout(), refresh_per_second=4) as live:
            while loop.time() < deadline and self.stream.state is not StreamState.ABORTED:
                live.update(self.generate_layout())
                await asyncio.sleep(0.25)
