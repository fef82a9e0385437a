"""CLI entry point: python -m snakes_ladders {play,host,join,simulate,stats,chart,export}."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import random
import sys
from pathlib import Path

from snakes_ladders.board import LADDERS, SNAKES, build_board_layout
from snakes_ladders.chart import make_length_chart
from snakes_ladders.export import generate_all
from snakes_ladders.game import GameRunner, ListObserver
from snakes_ladders.local_game import LocalGame
from snakes_ladders.persistence import ResultsDB, persist_game
from snakes_ladders.session import AVATARS, RoomStatus, Session
from snakes_ladders.store import SessionStore, SqliteGateway
from snakes_ladders.sync import POLL_INTERVAL, SyncEngine
from snakes_ladders.timeline import AnimationPhase, AsyncioScheduler, Timings

RESULTS_DIR = Path(os.environ.get("SNAKES_RESULTS_DIR", "results"))
DB_PATH = RESULTS_DIR / "simulations.db"
ROOMS_DB = Path(os.environ.get("SNAKES_ROOMS_DB", RESULTS_DIR / "rooms.db"))


def _open_db() -> ResultsDB:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    return ResultsDB(DB_PATH)


# ── text board ───────────────────────────────────────────────────────

def render_board(session: Session) -> str:
    """Plain-text board, top row first. Pawns replace the cell number."""
    pawns: dict[int, str] = {}
    for p in session.players:
        if p.position:
            pawns[p.position] = pawns.get(p.position, "") + p.avatar

    lines = []
    for row in build_board_layout():
        cells = []
        for cell in row:
            if cell in pawns:
                label = pawns[cell]
            elif cell in SNAKES:
                label = f"{cell}v"
            elif cell in LADDERS:
                label = f"{cell}^"
            else:
                label = str(cell)
            cells.append(f"{label:>5}")
        lines.append("".join(cells))

    waiting = [p.avatar for p in session.players if p.position == 0]
    if waiting:
        lines.append(f"  start: {' '.join(waiting)}")
    return "\n".join(lines)


def _status_line(session: Session) -> str:
    parts = [f"{p.avatar} {p.name}: {p.position or 'start'}" for p in session.players]
    return "   ".join(parts)


# ── play (local) ─────────────────────────────────────────────────────

class _LocalPrinter:
    """Prints each visible change of a LocalGame as one short line."""

    def __init__(self) -> None:
        self.phase = AnimationPhase.IDLE
        self.positions: list[int] = []

    def __call__(self, game: LocalGame) -> None:
        session = game.session
        if session is None:
            return
        if game.animation_phase != self.phase:
            if game.animation_phase == AnimationPhase.ROLLING:
                print("  🎲 rolling...")
            elif self.phase == AnimationPhase.ROLLING:
                print(f"  🎲 {session.dice_value}")
            if game.animation_phase == AnimationPhase.SNAKE:
                print("  🐍 snake!")
            elif game.animation_phase == AnimationPhase.LADDER:
                print("  🪜 ladder!")
            self.phase = game.animation_phase
        positions = session.positions
        if self.positions and positions != self.positions and game.is_animating:
            changed = [p for p, old in zip(positions, self.positions) if p != old]
            if changed:
                print(f"    → {changed[0]}")
        self.positions = positions


async def _play_local(args: argparse.Namespace) -> None:
    timings = Timings().scaled(args.speed)
    game = LocalGame(AsyncioScheduler(), timings, rng=random.Random(args.seed))
    game.add_listener(_LocalPrinter())
    game.start_game(args.player1, args.player2)

    try:
        while True:
            session = game.session
            print()
            print(render_board(session))
            print(_status_line(session))

            if session.status == RoomStatus.FINISHED:
                winner = session.winner_player
                print(f"\n🏆 {winner.avatar} {winner.name} wins!")
                answer = await asyncio.to_thread(input, "Play again? [y/N] ")
                if answer.strip().lower() != "y":
                    break
                game.reset_game()
                continue

            current = session.current_player
            prompt = f"{current.avatar} {current.name}, Enter to roll (r = reset, q = quit): "
            answer = (await asyncio.to_thread(input, prompt)).strip().lower()
            if answer == "q":
                break
            if answer == "r":
                game.reset_game()
                continue

            if not game.roll_dice():
                continue
            while game.busy:
                await asyncio.sleep(0.02)
            print(f"  {game.last_roll.message}")
    finally:
        game.close()


def cmd_play(args: argparse.Namespace) -> None:
    """Two players taking turns on this terminal."""
    try:
        asyncio.run(_play_local(args))
    except (EOFError, KeyboardInterrupt):
        print()


# ── host / join (networked) ──────────────────────────────────────────

async def _play_networked(gateway: SqliteGateway, code: str, player_id: str, poll: float) -> None:
    async with SyncEngine(gateway, code, player_id, poll_interval=poll) as engine:
        shown_error: str | None = None
        shown_move = None

        if engine.session is not None and engine.session.status == RoomStatus.WAITING:
            print("Waiting for an opponent to join...")
        while engine.session is None or engine.session.status == RoomStatus.WAITING:
            await asyncio.sleep(0.2)

        while True:
            session = engine.session
            if engine.error != shown_error:
                shown_error = engine.error
                if shown_error:
                    print(f"⚠️  {shown_error}")

            if session.last_move != shown_move:
                shown_move = session.last_move
                print()
                print(render_board(session))
                print(_status_line(session))

            if session.status == RoomStatus.FINISHED:
                winner = session.winner_player
                me = " (you)" if winner and winner.id == player_id else ""
                print(f"\n🏆 {winner.avatar} {winner.name}{me} wins!")
                return

            if engine.is_my_turn and not engine.is_rolling:
                await asyncio.to_thread(input, "Your turn, press Enter to roll: ")
                result = await engine.roll_dice()
                if result.ok:
                    print(f"  {result.message}")
            else:
                await asyncio.sleep(0.2)


def _gateway(args: argparse.Namespace) -> SqliteGateway:
    return SqliteGateway(SessionStore(args.db))


async def _host(args: argparse.Namespace) -> None:
    gateway = _gateway(args)
    try:
        session, player_id = await gateway.create_room(args.name, args.avatar)
        print(f"Room code: {session.code}  (share it with your opponent)")
        await _play_networked(gateway, session.code, player_id, args.poll)
    finally:
        gateway.store.close()


async def _join(args: argparse.Namespace) -> int:
    gateway = _gateway(args)
    try:
        result = await gateway.join_room(args.code, args.name, args.avatar)
        if not result.ok:
            print(result.message, file=sys.stderr)
            return 1
        await _play_networked(gateway, result.session.code, result.player_id, args.poll)
        return 0
    finally:
        gateway.store.close()


def cmd_host(args: argparse.Namespace) -> None:
    """Create a room in the shared store and play it."""
    try:
        asyncio.run(_host(args))
    except (EOFError, KeyboardInterrupt):
        print()


def cmd_join(args: argparse.Namespace) -> None:
    """Join a waiting room by code and play it."""
    try:
        code = asyncio.run(_join(args))
    except (EOFError, KeyboardInterrupt):
        print()
        return
    if code:
        sys.exit(code)


# ── simulate ─────────────────────────────────────────────────────────

def cmd_simulate(args: argparse.Namespace) -> None:
    """Play headless games and record them."""
    db = _open_db()
    names = (args.player1, args.player2)

    for i in range(args.games):
        seed = None if args.seed is None else args.seed + i
        observer = ListObserver()
        runner = GameRunner(
            names=names,
            rng=random.Random(seed),
            max_turns=args.max_turns,
            observer=observer,
        )
        result = runner.play()
        persist_game(db, names, result, observer.entries, seed=seed)

        if args.games <= 20 or (i + 1) % max(1, args.games // 10) == 0:
            winner = names[result.winner] if result.winner is not None else "nobody"
            print(f"[{i + 1}/{args.games}] {result.reason} → {winner} in {result.turns} rolls")

    db.close()


# ── stats ────────────────────────────────────────────────────────────

def cmd_stats(args: argparse.Namespace) -> None:
    """Print a summary of the recorded games."""
    if not DB_PATH.exists():
        print(f"No database found at {DB_PATH}. Run some games first.", file=sys.stderr)
        sys.exit(1)

    db = _open_db()
    summary = db.summary()
    db.close()

    if summary is None:
        print("No recorded games yet.", file=sys.stderr)
        sys.exit(1)

    print("\nSimulation summary")
    print("=" * 40)
    print(f"  {'games':24s} {summary.games:>8d}")
    print(f"  {'first player wins':24s} {summary.wins_first:>8d}")
    print(f"  {'second player wins':24s} {summary.wins_second:>8d}")
    print(f"  {'unfinished':24s} {summary.unfinished:>8d}")
    print(f"  {'rolls (avg)':24s} {summary.avg_turns:>8.1f}")
    print(f"  {'rolls (min / max)':24s} {summary.min_turns:>3d} / {summary.max_turns:<3d}")
    print(f"  {'snakes hit':24s} {summary.snake_hits:>8d}")
    print(f"  {'ladders climbed':24s} {summary.ladder_hits:>8d}")


# ── chart ────────────────────────────────────────────────────────────

def cmd_chart(args: argparse.Namespace) -> None:
    """Generate the game-length histogram from the database."""
    if not DB_PATH.exists():
        print(f"No database found at {DB_PATH}. Run some games first.", file=sys.stderr)
        sys.exit(1)

    db = _open_db()
    lengths = db.game_lengths()
    db.close()

    if not lengths:
        print("No finished games yet.", file=sys.stderr)
        sys.exit(1)

    out = args.output or "game_lengths.png"
    make_length_chart(lengths, output_path=out)
    print(f"Chart saved to {out}")


# ── export ───────────────────────────────────────────────────────────

def cmd_export(args: argparse.Namespace) -> None:
    """Write games.json and per-game event files."""
    if not DB_PATH.exists():
        print(f"No database found at {DB_PATH}. Run some games first.", file=sys.stderr)
        sys.exit(1)

    files = generate_all(DB_PATH, Path(args.output_dir))
    print(f"Wrote {len(files)} files to {args.output_dir}")


# ── main ─────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        prog="snakes_ladders",
        description="Snakes & Ladders, local and networked",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug logging")
    sub = parser.add_subparsers(dest="command")

    p_play = sub.add_parser("play", help="Two players on this terminal")
    p_play.add_argument("--player1", default="", help="Name of player 1")
    p_play.add_argument("--player2", default="", help="Name of player 2")
    p_play.add_argument("--speed", type=float, default=1.0, help="Animation time factor (0 = instant)")
    p_play.add_argument("--seed", type=int, help="Seed the dice")

    for name, help_text in (("host", "Create a networked room"), ("join", "Join a networked room")):
        p = sub.add_parser(name, help=help_text)
        if name == "join":
            p.add_argument("code", help="Room code to join")
        p.add_argument("--name", required=True, help="Your display name")
        p.add_argument("--avatar", default=AVATARS[0] if name == "host" else AVATARS[1], help="Display glyph")
        p.add_argument("--db", default=str(ROOMS_DB), help=f"Shared room store (default {ROOMS_DB})")
        p.add_argument("--poll", type=float, default=POLL_INTERVAL, help="Poll interval in seconds")

    p_sim = sub.add_parser("simulate", help="Play headless games into the results DB")
    p_sim.add_argument("--games", type=int, default=100, help="Number of games (default 100)")
    p_sim.add_argument("--max-turns", type=int, default=1000, help="Max rolls per game")
    p_sim.add_argument("--seed", type=int, help="Base seed; game i uses seed + i")
    p_sim.add_argument("--player1", default="Player 1")
    p_sim.add_argument("--player2", default="Player 2")

    sub.add_parser("stats", help="Summarize recorded games")

    p_chart = sub.add_parser("chart", help="Generate game-length histogram")
    p_chart.add_argument("--output", "-o", help="Output PNG path")

    p_export = sub.add_parser("export", help="Export recorded games as JSON")
    p_export.add_argument("--output-dir", "-o", default=str(RESULTS_DIR / "export"))

    args = parser.parse_args()
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    commands = {
        "play": cmd_play,
        "host": cmd_host,
        "join": cmd_join,
        "simulate": cmd_simulate,
        "stats": cmd_stats,
        "chart": cmd_chart,
        "export": cmd_export,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
    else:
        command(args)


if __name__ == "__main__":
    main()
