"""
Sidekick - Main Entry Point

Command line access to the rules engine over a directory of JSON files:
roll dice, inspect characters, spend and restore resources, rest, level up,
and import or export character documents.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from sidekick import __version__
from sidekick.config import EngineSettings
from sidekick.content import load_builtin_content
from sidekick.data_models import Character, ResetCondition
from sidekick.dice.dice_formula import DiceFormulaEvaluator
from sidekick.dice.dice_roller import DiceRoller
from sidekick.errors import SidekickError
from sidekick.service.character_service import CharacterService
from sidekick.service.import_export import CharacterImportExport
from sidekick.storage.character_repository import CharacterRepository
from sidekick.storage.key_value import JsonFileStorage
from sidekick.traits.trait_resolver import (
    get_computed_attributes,
    get_formula_variables,
    get_resource_definitions,
)
from sidekick.resources.resource_manager import get_current_value, get_resource_bounds


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


logger = logging.getLogger(__name__)


REST_CONDITIONS = {
    "turn": ResetCondition.TURN_END,
    "encounter": ResetCondition.ENCOUNTER_END,
    "safe": ResetCondition.SAFE_REST,
}


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="sidekick",
        description="Sidekick - character rules engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sidekick roll "1d20!+STR" --var STR=3    # Roll with a variable
  sidekick create "Mira" hunter            # Create a character
  sidekick spend <id> mana 2               # Spend a resource
  sidekick rest <id> --condition safe      # Take a safe rest
        """
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory for character storage (default: data)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    roll = subparsers.add_parser("roll", help="Evaluate a dice formula")
    roll.add_argument("formula", help="Dice formula, e.g. 2d6+3 or 1d20!!")
    roll.add_argument("--seed", type=int, default=None, help="Seed for reproducible rolls")
    roll.add_argument("--no-crits", action="store_true", help="Disable criticals and explosions")
    roll.add_argument("--fumbles", action="store_true", help="Report fumbles on a natural 1")
    roll.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Formula variable (repeatable)",
    )

    subparsers.add_parser("list", help="List stored characters")

    create = subparsers.add_parser("create", help="Create a character")
    create.add_argument("name")
    create.add_argument("class_id")

    show = subparsers.add_parser("show", help="Show a character")
    show.add_argument("id")

    for name, verb in (("spend", "Spend from"), ("restore", "Restore")):
        command = subparsers.add_parser(name, help=f"{verb} a resource")
        command.add_argument("id")
        command.add_argument("resource")
        command.add_argument("amount", type=int)

    rest = subparsers.add_parser("rest", help="End a turn, end an encounter or take a safe rest")
    rest.add_argument("id")
    rest.add_argument(
        "--condition",
        choices=sorted(REST_CONDITIONS),
        default="safe",
        help="Checkpoint to apply (default: safe)",
    )

    level_up = subparsers.add_parser("level-up", help="Advance a character one level")
    level_up.add_argument("id")
    level_up.add_argument("--seed", type=int, default=None, help="Seed for the hit die roll")

    import_cmd = subparsers.add_parser("import", help="Import a character JSON file")
    import_cmd.add_argument("file", type=Path)
    import_cmd.add_argument("--overwrite", action="store_true", help="Replace an existing character")

    export = subparsers.add_parser("export", help="Export a character to JSON")
    export.add_argument("id")
    export.add_argument("--output", type=Path, default=None, help="Output file (default: stdout)")

    return parser.parse_args(argv)


def parse_variables(pairs: list[str]) -> dict[str, int]:
    """Parse NAME=VALUE pairs into formula variables."""
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"Expected NAME=VALUE, got '{pair}'")
        variables[name.strip().upper()] = int(value)
    return variables


# =============================================================================
# OUTPUT
# =============================================================================

def format_character(character: Character, service: CharacterService) -> str:
    """Multi-line summary of a character."""
    lines = [
        f"{character.name} ({character.id})",
        f"  Level {character.level} {character.class_id}",
        f"  HP {character.hit_points.current}/{character.hit_points.max}"
        f" (+{character.hit_points.temporary} temp), wounds {character.wounds}",
    ]
    attributes = get_computed_attributes(character, service.catalog)
    lines.append("  " + ", ".join(f"{k[:3].upper()} {v:+d}" for k, v in attributes.items()))

    variables = get_formula_variables(character, service.catalog)
    for definition in get_resource_definitions(character, service.catalog):
        current = get_current_value(definition.id, definition, character.resource_values, variables)
        _, maximum = get_resource_bounds(definition, variables)
        lines.append(f"  {definition.name}: {current}/{maximum}")
    for pool in character.dice_pools:
        lines.append(f"  {pool.definition.name} (d{pool.definition.dice_size}): {pool.current_dice}")
    return "\n".join(lines)


# =============================================================================
# COMMANDS
# =============================================================================

def build_service(args: argparse.Namespace, seed: Optional[int] = None) -> CharacterService:
    settings = EngineSettings(data_dir=args.data_dir)
    repository = CharacterRepository(JsonFileStorage(settings.data_dir), settings)
    return CharacterService(
        repository,
        load_builtin_content(),
        settings=settings,
        random_source=DiceRoller(seed=seed),
    )


def run_command(args: argparse.Namespace) -> int:
    """Execute a parsed command. Returns the process exit code."""
    if args.command == "roll":
        evaluator = DiceFormulaEvaluator(DiceRoller(seed=args.seed))
        result = evaluator.evaluate(
            args.formula,
            allow_criticals=not args.no_crits,
            allow_fumbles=args.fumbles,
            variables=parse_variables(args.var),
        )
        print(result.breakdown)
        if result.is_critical:
            print(f"CRITICAL! ({result.num_criticals} explosion(s))")
        if result.is_fumble:
            print("FUMBLE!")
        for warning in result.warnings:
            print(f"Warning: {warning}")
        return 0

    service = build_service(args, seed=getattr(args, "seed", None))
    transfer = CharacterImportExport(service.repository)

    if args.command == "list":
        characters = service.repository.list()
        if not characters:
            print("No characters stored.")
        for character in characters:
            print(f"{character.id}  {character.name}  (level {character.level} {character.class_id})")
        return 0

    if args.command == "create":
        character = service.repository.create(args.name, args.class_id)
        print(f"Created {character.name} ({character.id})")
        return 0

    if args.command == "import":
        result = transfer.import_character(args.file.read_text(), overwrite_existing=args.overwrite)
        if result.needs_confirmation:
            print(f"{result.error} Use --overwrite to replace it.")
            return 1
        if not result.success:
            print(f"Error: {result.error}")
            return 1
        print(f"Imported {result.character.name} ({result.character.id})")
        return 0

    character = service.load_character(args.id)

    if args.command == "show":
        print(format_character(character, service))
    elif args.command == "spend":
        service.spend_resource(args.resource, args.amount)
        print(f"{args.resource}: {service.get_resource_value(args.resource)}")
    elif args.command == "restore":
        service.restore_resource(args.resource, args.amount)
        print(f"{args.resource}: {service.get_resource_value(args.resource)}")
    elif args.command == "rest":
        condition = REST_CONDITIONS[args.condition]
        if condition == ResetCondition.TURN_END:
            service.end_turn()
        elif condition == ResetCondition.ENCOUNTER_END:
            service.end_encounter()
        else:
            service.safe_rest()
        print(format_character(service.get_current_character(), service))
    elif args.command == "level-up":
        result = service.level_up()
        print(f"{result.character_name} is now level {result.new_level} (+{result.hp_gained} HP)")
        for trait in result.pending_selections:
            print(f"  Pending choice: {trait.id} ({trait.type})")
    elif args.command == "export":
        document = transfer.export_character(character)
        if args.output:
            args.output.write_text(document)
            print(f"Exported to {args.output}")
        else:
            print(document)
    return 0


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI usage."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    try:
        return run_command(args)
    except (SidekickError, ValueError) as e:
        logger.debug(f"Command failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
