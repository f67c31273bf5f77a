"""Main entry point for the image metadata sync tool."""

import argparse
import json
from dataclasses import replace
import sys
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from metadata_sync.utils.config_loader import load_config
from metadata_sync.utils.logger import setup_logger

logger = None

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.tif', '.tiff', '.png', '.webp')


def main(argv=None):
    """Main entry point."""
    global logger

    parser = argparse.ArgumentParser(
        description="Synchronize descriptions, keywords and categories across EXIF, IPTC and XMP"
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log at DEBUG level'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Show command
    show_parser = subparsers.add_parser(
        'show',
        help='Print the metadata record of images as JSON'
    )
    _add_common_arguments(show_parser)

    # Write command
    write_parser = subparsers.add_parser(
        'write',
        help='Write description, keywords or categories to images'
    )
    _add_common_arguments(write_parser)
    write_parser.add_argument(
        '--description',
        help='New description (an empty string clears it)'
    )
    write_parser.add_argument(
        '--keyword',
        action='append',
        dest='keywords',
        help='Keyword to write; repeat for several (replaces existing keywords)'
    )
    write_parser.add_argument(
        '--category',
        action='append',
        dest='categories',
        help='Category to write; repeat for several (replaces existing categories)'
    )
    write_parser.add_argument(
        '--clear-keywords',
        action='store_true',
        help='Remove all keywords'
    )
    write_parser.add_argument(
        '--clear-categories',
        action='store_true',
        help='Remove all categories'
    )
    write_parser.add_argument(
        '--no-exif',
        action='store_true',
        help='Remove the EXIF description instead of mirroring the new description'
    )

    # Apply-response command
    response_parser = subparsers.add_parser(
        'apply-response',
        help='Parse a vision model response and write it to images'
    )
    _add_common_arguments(response_parser)
    response_parser.add_argument(
        '--response-file',
        required=True,
        help="File holding the model response ('-' reads stdin)"
    )

    # Tidy command
    tidy_parser = subparsers.add_parser(
        'tidy',
        help='Trim description boilerplate and split comma-joined categories'
    )
    _add_common_arguments(tidy_parser)
    tidy_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Report what would change without writing'
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        load_dotenv()

        # Load configuration
        config = load_config(args.config)

        # Setup logging
        logger = setup_logger(config, level_override='DEBUG' if args.verbose else None)

        # Execute command
        if args.command == 'show':
            return cmd_show(config, args)
        elif args.command == 'write':
            return cmd_write(config, args)
        elif args.command == 'apply-response':
            return cmd_apply_response(config, args)
        elif args.command == 'tidy':
            return cmd_tidy(config, args)

    except KeyboardInterrupt:
        if logger:
            logger.info("Operation cancelled by user")
        print("\nOperation cancelled.")
        return 130
    except Exception as e:
        if logger:
            logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1

    return 0


def _add_common_arguments(subparser):
    subparser.add_argument(
        'paths',
        nargs='+',
        help='Image files or directories (searched recursively)'
    )
    subparser.add_argument(
        '--config',
        default='config/config.yaml',
        help='Path to configuration file'
    )


def collect_images(paths):
    """Expand directories into the image files below them.

    Args:
        paths: File and directory paths from the command line

    Returns:
        Sorted list of distinct image paths

    Raises:
        FileNotFoundError: If a path does not exist
    """
    images = {}
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            for candidate in path.rglob('*'):
                if candidate.is_file() and candidate.suffix.lower() in IMAGE_EXTENSIONS:
                    images.setdefault(candidate.resolve(), candidate)
        elif path.is_file():
            images.setdefault(path.resolve(), path)
        else:
            raise FileNotFoundError(f"Path not found: {path}")
    return sorted(images.values())


def _run_batch(config, image_files, operation):
    """Run an operation over files with a progress bar and print a summary."""
    from metadata_sync.workflow import BatchProcessor

    processor = BatchProcessor(config)

    with tqdm(total=len(image_files), unit='image', disable=len(image_files) < 2) as progress:
        summary = processor.process_batch(
            image_files,
            operation,
            progress_callback=lambda current, total: progress.update(1)
        )

    for result in summary['results']:
        for warning in result['warnings']:
            print(f"Warning: {Path(result['image_path']).name}: {warning}")
        if result['error']:
            print(f"Failed: {result['image_path']}: {result['error']}")

    print(f"\nProcessing complete:")
    print(f"  Updated: {summary['success']}")
    print(f"  Unchanged: {summary['unchanged']}")
    print(f"  Failed: {summary['failed']}")

    return 1 if summary['failed'] else 0


def cmd_show(config, args):
    """Print records as JSON."""
    from metadata_sync.metadata import ExifToolProfileStore, MetadataReader, MetadataSession

    image_files = collect_images(args.paths)
    logger.info(f"Reading metadata from {len(image_files)} images")

    reader = MetadataReader.from_config(config)
    verify = config.get('metadata', {}).get('verify_images', True)
    records = {}
    failed = 0

    with ExifToolProfileStore(config['exiftool'].get('path') or None) as store:
        for image_path in image_files:
            try:
                with MetadataSession(image_path, store=store, reader=reader, verify_image=verify) as session:
                    records[str(image_path)] = session.read().to_dict()
            except Exception as e:
                logger.error(f"Failed to read {image_path}: {e}", exc_info=True)
                records[str(image_path)] = {'error': str(e)}
                failed += 1

    print(json.dumps(records, indent=2, ensure_ascii=False))
    return 1 if failed else 0


def cmd_write(config, args):
    """Write values given on the command line."""
    from metadata_sync.metadata import MetadataRecord

    if args.keywords and args.clear_keywords:
        print("Error: --keyword and --clear-keywords are mutually exclusive")
        return 1
    if args.categories and args.clear_categories:
        print("Error: --category and --clear-categories are mutually exclusive")
        return 1

    keywords = () if args.clear_keywords else args.keywords
    categories = () if args.clear_categories else args.categories

    if args.description is None and keywords is None and categories is None:
        print("Nothing to write: give --description, --keyword or --category")
        return 1

    def operation(image_path, current):
        exif = current.exif_image_description
        if args.description is not None:
            exif = '' if args.no_exif else args.description
        return MetadataRecord(
            description=args.description,
            exif_image_description=exif,
            keywords=keywords,
            categories=categories,
        )

    image_files = collect_images(args.paths)
    logger.info(f"Writing metadata to {len(image_files)} images")
    return _run_batch(config, image_files, operation)


def cmd_apply_response(config, args):
    """Parse a model response and write it."""
    from metadata_sync.parsing import parse_response

    if args.response_file == '-':
        text = sys.stdin.read()
    else:
        text = Path(args.response_file).read_text(encoding='utf-8')

    parsed = parse_response(text)
    if not parsed.successfully_parsed:
        print(f"Nothing to apply: {parsed.description}")
        return 1

    sync_exif = config.get('metadata', {}).get('sync_exif_description', True)
    record = parsed.to_record(sync_exif=sync_exif)
    logger.info(
        f"Parsed response: {len(parsed.keywords)} keywords, {len(parsed.categories)} categories"
    )

    def operation(image_path, current):
        if record.exif_image_description is None:
            # Keep the file's own EXIF description when not syncing it
            return replace(record, exif_image_description=current.exif_image_description)
        return record

    image_files = collect_images(args.paths)
    return _run_batch(config, image_files, operation)


def cmd_tidy(config, args):
    """Apply tidy-up rules."""
    from metadata_sync.workflow import TidyUpRules

    rules = TidyUpRules.from_config(config)

    def operation(image_path, current):
        result = rules.apply(current)
        if not result.changed:
            return None
        print(f"{image_path.name}: {' '.join(result.messages)}")
        return None if args.dry_run else result.record

    image_files = collect_images(args.paths)
    logger.info(f"Tidying metadata of {len(image_files)} images")
    return _run_batch(config, image_files, operation)


if __name__ == '__main__':
    sys.exit(main())
