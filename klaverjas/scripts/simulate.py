"""Play random full games against a running server.

Four bots share one lobby and pick uniformly among their legal cards; the seat
that sees a trick close claims roem on it half of the time.
The server must be running at KLAVERJAS_URL (default http://localhost:3000).

Usage: python -m klaverjas.scripts.simulate [games] [seed]
"""
import os
import random
import sys

import requests

KLAVERJAS_URL = os.environ.get("KLAVERJAS_URL", "http://localhost:3000")
N = int(sys.argv[1]) if len(sys.argv) > 1 else 1
SUITS = ["spades", "hearts", "clubs", "diamonds"]
PROB_CLAIM_ROEM = 0.5
MAX_STEPS = 2000


class ApiError(RuntimeError):
    pass


# ---------------------------------------------------------------------------
# Server helpers
# ---------------------------------------------------------------------------

def api_post(path: str, payload: dict) -> dict:
    r = requests.post(f"{KLAVERJAS_URL}{path}", json=payload, timeout=5)
    data = r.json()
    if r.status_code != 200:
        raise ApiError(f"{path}: {data.get('code')} {data.get('error')}")
    return data


def api_get(path: str, **params):
    r = requests.get(f"{KLAVERJAS_URL}{path}", params=params, timeout=5)
    r.raise_for_status()
    return r.json()


def setup_lobby(names=("Anna", "Bram", "Cor", "Door")) -> tuple:
    """Create a lobby with four seated bots → (code, {seat: player_id})."""
    created = api_post("/api/lobbies", {"name": names[0]})
    code = created["code"]
    players = {0: created["player_id"]}
    for seat, name in enumerate(names[1:], start=1):
        joined = api_post(f"/api/lobbies/{code}/join", {"name": name, "seat": seat})
        players[seat] = joined["player_id"]
    return code, players


# ---------------------------------------------------------------------------
# Game loop
# ---------------------------------------------------------------------------

def play_game(rng: random.Random) -> dict:
    code, players = setup_lobby()
    state = api_post(f"/api/lobbies/{code}/start", {"player_id": players[0]})["state"]
    game_path = f"/api/lobbies/{code}/game"

    for _ in range(MAX_STEPS):
        phase = state["phase"]
        if phase == "gameEnd":
            return state

        seat = state["currentPlayer"]
        player_id = players.get(seat) if seat is not None else players[0]

        if phase == "trump":
            state = api_post(f"{game_path}/trump", {"player_id": player_id, "suit": rng.choice(SUITS)})["state"]
        elif phase == "playing":
            legal = api_get(f"{game_path}/legal", player_id=player_id)
            card = rng.choice(legal)
            state = api_post(f"{game_path}/play", {"player_id": player_id, "card_id": card["id"]})["state"]
        elif phase == "trickEnd":
            if not state["roemClaimed"] and rng.random() < PROB_CLAIM_ROEM:
                api_post(f"{game_path}/roem", {"player_id": player_id})
            state = api_post(f"{game_path}/complete-trick", {"player_id": player_id})["state"]
        elif phase == "roundEnd":
            result = state["lastRoundResult"]
            print(f"    round {result['round']:2d}: {result['scores']}"
                  f"{' nat' if result['isNat'] else ''}{' pit' if result['isPit'] else ''}")
            state = api_post(f"{game_path}/next-round", {"player_id": player_id})["state"]
        else:
            raise ApiError(f"Unexpected phase {phase}")

    raise ApiError(f"Game in lobby {code} did not finish in {MAX_STEPS} steps")


def main():
    seed = int(sys.argv[2]) if len(sys.argv) > 2 else random.randint(1, 10_000_000)
    rng = random.Random(seed)
    print(f"Running {N} games (seed {seed}) against {KLAVERJAS_URL}\n")

    for i in range(1, N + 1):
        try:
            state = play_game(rng)
        except (ApiError, requests.RequestException) as e:
            print(f"\n  FAILED at game {i}: {e}")
            sys.exit(1)
        print(f"  game {i}/{N}: {state['gameScores']} winner={state.get('winner')}")

    print(f"\nAll {N} games finished.")


if __name__ == "__main__":
    main()
