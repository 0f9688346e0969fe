"""Utility that launches a sample PostgreSQL Docker container for pgwrap."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pgwrap.config import CONFIG_FILE, ConnectionProfileConfig, load_config, save_config
from pgwrap.connections import DatabaseConnectionError
from pgwrap.query import Database

DEFAULT_CONTAINER = "pgwrap-sample-db"
DEFAULT_PORT = 5543
DEFAULT_PASSWORD = "pgwrap"
DEFAULT_DB = "pgwrap_demo"
DEFAULT_USER = "pgwrap"
DOCKER_IMAGE = "postgres:16-alpine"


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(name: str, port: int, password: str, database: str, user: str) -> None:
    if container_exists(name):
        print(f"Container '{name}' already exists. Reusing it.")
        run(["docker", "start", name], check=False)
    else:
        run(
            [
                "docker",
                "run",
                "-d",
                "--name",
                name,
                "-e",
                f"POSTGRES_PASSWORD={password}",
                "-e",
                f"POSTGRES_DB={database}",
                "-e",
                f"POSTGRES_USER={user}",
                "-p",
                f"{port}:5432",
                DOCKER_IMAGE,
            ]
        )
    wait_for_start(name, user)


def wait_for_start(name: str, user: str, retries: int = 15, delay: float = 1.0) -> None:
    for attempt in range(retries):
        result = subprocess.run(
            [
                "docker",
                "exec",
                name,
                "pg_isready",
                "-U",
                user,
            ],
            text=True,
        )
        if result.returncode == 0:
            return
        time.sleep(delay)
    print("Warning: database did not report ready state; continuing anyway.")


def seed_data(name: str, database: str, user: str) -> None:
    sql = """
    CREATE TABLE IF NOT EXISTS people (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS visits (
        id SERIAL PRIMARY KEY,
        person_id TEXT REFERENCES people(id),
        park TEXT NOT NULL,
        UNIQUE (person_id, park)
    );
    INSERT INTO people (id, first_name, last_name) VALUES
        ('mmouse', 'Mickey', 'Mouse'),
        ('dduck', 'Donald', 'Duck'),
        ('ggoof', 'Goofy', 'Goof')
    ON CONFLICT DO NOTHING;
    INSERT INTO visits (person_id, park)
    SELECT p.id, 'Magic Kingdom'
    FROM people p
    WHERE NOT EXISTS (
        SELECT 1 FROM visits v WHERE v.person_id = p.id AND v.park = 'Magic Kingdom'
    );
    """.strip()

    run(
        [
            "docker",
            "exec",
            "-i",
            name,
            "psql",
            "-U",
            user,
            "-d",
            database,
            "-v",
            "ON_ERROR_STOP=1",
        ],
        input=sql,
    )


def update_config(port: int, user: str, database: str, password: str) -> None:
    config = load_config()
    profiles = list(config.profiles)
    target = next((p for p in profiles if p.name == "Docker Sample"), None)
    if target is None:
        profiles.append(
            ConnectionProfileConfig(
                name="Docker Sample",
                host="localhost",
                port=port,
                database=database,
                user=user,
                password=password,
            )
        )
        config = config.model_copy(update={"profiles": profiles})
        save_config(config)
        print(f"Added 'Docker Sample' profile to {CONFIG_FILE}.")
    else:
        print("Profile 'Docker Sample' already present in config; leaving as-is.")


def check_profile() -> bool:
    try:
        with Database.from_profile("Docker Sample") as db:
            people = db.fetch_all("SELECT * FROM people ORDER BY id", key_field="id", key_value="first_name")
    except DatabaseConnectionError as exc:
        print(f"Could not reach the sample database: {exc}")
        return False
    print(f"Found {len(people)} people: {', '.join(people.values())}")
    return True


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--container", default=DEFAULT_CONTAINER, help="Docker container name")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Host port to expose Postgres on")
    parser.add_argument("--password", default=DEFAULT_PASSWORD, help="Postgres password")
    parser.add_argument("--database", default=DEFAULT_DB, help="Database name to create")
    parser.add_argument("--user", default=DEFAULT_USER, help="Database user")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        start_container(args.container, args.port, args.password, args.database, args.user)
        seed_data(args.container, args.database, args.user)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    update_config(args.port, args.user, args.database, args.password)
    if not check_profile():
        return 1
    print("Sample database is ready. Connect using the 'Docker Sample' profile.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
