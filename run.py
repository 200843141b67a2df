import argparse
import logging
import os
import pathlib
import sys

from chip8 import RomLoadError, read_rom
from config import AudioConfig, EmulatorConfig, parse_color
from quirks import PROFILES

logger = logging.getLogger(__name__)

banner = """-------------------------------------------------
ddCh8Py - A Simple CHIP-8 Emulator in Python
-------------------------------------------------
LICENSE: MIT License
Games are free software downloaded from the
Internet, and are included in this repository.
Please note that the games are not created by me,
and I do not claim any ownership over them.
--------------------------------------------------"""

PAGE_SIZE = 7
ON_OFF = {"on": True, "off": False}


def build_parser():
    parser = argparse.ArgumentParser(prog="ddch8py", description="A simple CHIP-8 emulator.")
    parser.add_argument("rom", nargs="?", help="ROM file to run; without it a game menu is shown")
    parser.add_argument("--games", default="games", help="directory listed by the game menu (default: games)")
    parser.add_argument("--rate", type=int, default=700, help="instructions per second (default: 700)")
    parser.add_argument("--quirks", choices=sorted(PROFILES), default="chip8",
                        help="interpreter behaviour profile (default: chip8)")
    parser.add_argument("--shift-quirk", choices=ON_OFF, help="8XY6/8XYE shift VY instead of VX")
    parser.add_argument("--index-quirk", choices=ON_OFF, help="FX55/FX65 advance I")
    parser.add_argument("--logic-quirk", choices=ON_OFF, help="8XY1/8XY2/8XY3 reset VF")
    parser.add_argument("--width", type=int, default=64)
    parser.add_argument("--height", type=int, default=32)
    parser.add_argument("--scale", type=int, default=12, help="window pixels per CHIP-8 pixel (default: 12)")
    parser.add_argument("--fg", type=parse_color, default="#FFFFFF", help="foreground colour as #RRGGBB")
    parser.add_argument("--bg", type=parse_color, default="#000000", help="background colour as #RRGGBB")
    parser.add_argument("--volume", type=float, default=0.2, help="beep volume between 0 and 1 (default: 0.2)")
    parser.add_argument("--tone", type=int, default=440, help="beep frequency in Hz (default: 440)")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser


def config_from_args(args):
    overrides = {}
    for option, quirk in (("shift_quirk", "shift_uses_vy"),
                          ("index_quirk", "load_store_increments_i"),
                          ("logic_quirk", "logic_resets_vf")):
        value = getattr(args, option)
        if value is not None:
            overrides[quirk] = ON_OFF[value]
    config = EmulatorConfig(
        clock_rate=args.rate,
        width=args.width,
        height=args.height,
        quirks=args.quirks,
        scale=args.scale,
        fg_color=args.fg,
        bg_color=args.bg,
        audio=AudioConfig(tone_hz=args.tone, volume=args.volume),
        quirk_overrides=overrides,
    )
    return config.validate()


def clear_screen():
    os.system('cls' if os.name == 'nt' else 'clear')
    print(banner)


def choose_game(games_dir, read=input):
    """Paged menu over games_dir. Returns the chosen path, or None to exit."""
    games = sorted(pathlib.Path(games_dir).glob('*'))
    if not games:
        print(f"No games found in {games_dir}.")
        return None
    # 0: exit, 8: previous page, 9: next page
    pages = [len(games[i:i + PAGE_SIZE]) for i in range(0, len(games), PAGE_SIZE)]
    current_page = 0
    print("0. Exit")
    while True:
        print(f"Page {current_page + 1}/{len(pages)}")
        for i, game in enumerate(games[current_page * PAGE_SIZE:(current_page + 1) * PAGE_SIZE]):
            print(f"{i + 1}. {game.name}")
        if current_page > 0:
            print("8. Previous Page")
        if current_page < len(pages) - 1:
            print("9. Next Page")
        choice = read("Select a game to play: ")
        if choice == '0':
            return None
        elif choice == '8' and current_page > 0:
            current_page -= 1
        elif choice == '9' and current_page < len(pages) - 1:
            current_page += 1
        elif choice.isdigit() and 1 <= int(choice) <= pages[current_page]:
            return games[current_page * PAGE_SIZE + int(choice) - 1]
        else:
            print("Invalid choice. Please try again.")


def play(path, config):
    from frontend import Emulator

    try:
        rom = read_rom(path)
    except RomLoadError as e:
        logger.error(str(e))
        return 1
    print(f"Loading {pathlib.Path(path).name}...")
    emulator = Emulator(rom, config)
    emulator.run(caption=f"CHIP-8 - {pathlib.Path(path).name}")
    return 1 if emulator.fault is not None else 0


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format="[%(levelname)s]:  %(message)s", stream=sys.stdout)
    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    if args.rom:
        return play(args.rom, config)

    print(banner)
    while True:
        game_path = choose_game(args.games)
        if game_path is None:
            return 0
        play(game_path, config)
        clear_screen()


if __name__ == "__main__":
    sys.exit(main())
