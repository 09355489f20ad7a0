"""
Command-line prediction for a single chest X-ray.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from .exceptions import DetectionError
from .inference import ArchitectureKind, ClassificationResult, PneumoniaDetectionService
from .utils import Config, setup_logging


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Predict pneumonia from chest X-ray')
    parser.add_argument('--image', type=str, required=True,
                        help='Path to a JPEG or PNG chest X-ray image')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to configuration file')
    parser.add_argument('--backend', type=str, default=None,
                        choices=[k.value for k in ArchitectureKind],
                        help='Scoring backend (overrides model.backend)')
    parser.add_argument('--output', type=str, default=None,
                        help='Path to save results (JSON)')
    parser.add_argument('--device', type=str, default=None,
                        choices=['auto', 'cuda', 'cpu'],
                        help='Device to use')
    return parser.parse_args(argv)


async def run_prediction(config: Config, data: bytes) -> ClassificationResult:
    """Initialize a service, classify one upload and dispose the service."""
    async with PneumoniaDetectionService(config) as service:
        return await service.analyze_upload(data)


def main(argv=None) -> int:
    """Main prediction function."""
    args = parse_args(argv)

    # Load configuration
    config = Config(args.config)
    if args.backend:
        config.set('model.backend', args.backend)
    if args.device:
        config.set('inference.device', args.device)
    setup_logging(config)

    image_path = Path(args.image)
    if not image_path.exists():
        logger.error(f"Image not found: {image_path}")
        return 1

    logger.info(f"Processing image: {image_path}")

    try:
        result = asyncio.run(run_prediction(config, image_path.read_bytes()))
    except DetectionError as e:
        logger.error(f"Prediction failed ({type(e).__name__}): {e}")
        return 1

    # Display results
    logger.info("=" * 60)
    logger.info(f"Status:      {result.status.value}")
    logger.info(f"Confidence:  {result.confidence:.2%}")
    logger.info(f"Model:       {result.model_version}")
    logger.info(f"Time:        {result.processing_time_ms} ms")
    if result.notes:
        logger.info(f"Notes:       {result.notes}")
    logger.info("=" * 60)

    payload = {'image_path': str(image_path), **result.to_dict()}

    # Save results
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2)
        logger.info(f"Results saved to {output_path}")
    else:
        print(json.dumps(payload, indent=2))

    return 0


if __name__ == '__main__':
    sys.exit(main())
