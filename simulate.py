import argparse
import time

from ludo_warp.config import config
from ludo_warp.simulator import run_simulation


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate all-computer Ludo warp games")
    parser.add_argument("--games", type=int, default=1, help="Number of games to play")
    parser.add_argument("--seed", type=int, default=None, help="Seed of the first game")
    parser.add_argument(
        "--max-turns",
        type=int,
        default=config.MAX_TURNS,
        help="Give up on a game after this many rolls",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    print("--- Starting Simulation ---")
    print(f"Max game turns set to: {args.max_turns}")
    start_time = time.time()

    wins = {pid: 0 for pid in config.player_ids}
    unfinished = 0
    for idx in range(args.games):
        seed = None if args.seed is None else args.seed + idx
        result = run_simulation(seed=seed, max_turns=args.max_turns)
        if not result.finished:
            unfinished += 1
            print(f"Game {idx + 1}: no result after {result.turns} turns")
            continue
        wins[result.winners[0]] += 1
        print(
            f"Game {idx + 1}: rankings {result.rankings} "
            f"({result.turns} turns, {result.actions} actions)"
        )

    elapsed = time.time() - start_time
    print("\n--- Simulation Finished ---")
    for pid, count in wins.items():
        print(f"Player {pid} won {count} game(s)")
    if unfinished:
        print(f"Unfinished games: {unfinished}")
    print(f"Elapsed: {elapsed:.2f}s")


if __name__ == "__main__":
    main()
