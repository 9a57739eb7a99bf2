"""
MODULE OVERVIEW:
The Rich terminal dashboard for the discussion clock.

WHAT IS HAPPENING HERE:
We use Rich to show the live seat board, the speaking and requesting queues, and the
clock's own state (cadence, interval, cache validity). The facade client polls in the
background and hands every payload to `on_payload`; the Live loop simply re-renders the
latest one.
"""

from rich.live import Live
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.markup import escape
from collections import deque
from datetime import datetime
import asyncio

from discussion_clock.client.facade_client import FacadeClient
from discussion_clock.shared.models import CadenceMode, Seat, UniversalResponse
from discussion_clock.shared.seat_utils import calculate_seat_stats, seat_priority, sort_seats_by_priority, SPEAKING, REQUESTING

STATE_STYLES = {SPEAKING: ("SPEAKING", "green"), REQUESTING: ("REQUESTING", "yellow")}

class Visualizer:
    def __init__(self, client: FacadeClient):
        self.client = client
        self.payload: UniversalResponse | None = None
        self.status = "INITIALIZING"
        self.timeline = deque(maxlen=5)

    def on_status_change(self, status: str):
        if status != self.status:
            ts = datetime.now().strftime("%H:%M:%S")
            self.timeline.appendleft(f"[{ts}] State: {status}")
        self.status = status

    def on_payload(self, payload: UniversalResponse):
        self.payload = payload

    def _queue_table(self, title: str, seats: list[Seat]) -> Table:
        table = Table(title=title, expand=True)
        table.add_column("Seat", style="cyan", no_wrap=True)
        table.add_column("Role", style="magenta")
        if not seats:
            table.add_row("-", "empty")
        for seat in seats:
            table.add_row(str(seat.seat_number), escape(seat.role))
        return table

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
            Layout(name="speaking"),
            Layout(name="requesting"),
            Layout(name="timeline")
        )

        payload = self.payload
        if payload is None:
            layout["header"].update(Panel(f"[yellow bold]Waiting for facade | Status: {self.status}[/]", style="yellow"))
            layout["left"].update(Panel("No data yet", title="Seats"))
            layout["speaking"].update(Panel("", title="Speaking"))
            layout["requesting"].update(Panel("", title="Requesting"))
            layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))
            return layout

        clock = payload.clock_status
        color = "red" if clock.last_error else "magenta" if clock.mode is CadenceMode.BURST else "green"
        stats = calculate_seat_stats(payload.seats)
        header = (
            f"[{color} bold]Clock: {clock.mode.value.upper()} every {clock.interval_ms}ms | "
            f"Cache: {'fresh' if payload.cache_valid else 'stale'} | "
            f"Seats {stats.total} / Speaking {stats.speaking} / Requesting {stats.requesting} / Idle {stats.idle}[/]"
        )
        layout["header"].update(Panel(header, style=color))

        ordered = sort_seats_by_priority(payload.seats, payload.speaker_order, payload.request_order)
        table = Table(title="Seat Board", expand=True)
        table.add_column("Seat", justify="left", style="cyan", no_wrap=True)
        table.add_column("Role", style="magenta")
        table.add_column("State")
        for seat in ordered:
            label, style = STATE_STYLES.get(seat_priority(seat), ("idle", "dim"))
            table.add_row(str(seat.seat_number), escape(seat.role), f"[{style}]{label}[/]")
        layout["left"].update(Panel(table, title="Seats"))

        speaking = [s for s in ordered if seat_priority(s) == SPEAKING]
        requesting = [s for s in ordered if seat_priority(s) == REQUESTING]
        layout["speaking"].update(Panel(self._queue_table("Speaking", speaking), title="Queue"))
        layout["requesting"].update(Panel(self._queue_table("Requesting", requesting), title="Queue"))

        timeline = list(self.timeline)
        if clock.last_error:
            timeline.insert(0, f"[red]Last error: {escape(clock.last_error)}[/]")
        layout["timeline"].update(Panel("\n".join(timeline), title="Timeline"))

        return layout

    async def run(self, duration_s: float):
        # Bridge the client hooks
        async def payload_hook(p): self.on_payload(p)
        async def status_hook(s): self.on_status_change(s)

        self.client.set_callbacks(payload_hook, status_hook)

        client_task = asyncio.create_task(self.client.run(duration_s))

        try:
            with Live(self.generate_layout(), refresh_per_second=4) as live:
                while not client_task.done():
                    live.update(self.generate_layout())
                    await asyncio.sleep(0.25)
        finally:
            client_task.cancel()
            await asyncio.gather(client_task, return_exceptions=True)
            await self.client.aclose()
