#!/usr/bin/env python3
"""
Command-line interface for trabecular bone morphometry.
"""

import argparse
import logging
import sys
import os

from . import TrabecularAnalyzer, visualize_results
from .analysis import MEASURES
from .results import format_from_path
from .triple_point_angles import DEFAULT_NTH_POINT
from .visualization import plot_skeleton_graphs
from .volume_fraction import DEFAULT_SURFACE_RESAMPLING, SURFACE, VOXEL
from .volume_loader import save_tiff_stack

def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Trabecular bone morphometry of binary micro-CT volumes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=
        """
            Examples:

            # All measures on a TIFF stack
            bonemorph scan.tif --output results.json

            # Triple point angles only, sampling branches 4 voxels from the vertex
            bonemorph scan.tif --measures triple_point_angles --nth-point 4 --output angles.csv

            # Angles between vertex centroids
            bonemorph slices/ --measures triple_point_angles --nth-point -1 --output angles.xlsx

            # Thickness and spacing with calibrated voxels
            bonemorph scan.tif --measures thickness spacing --spacing 0.02 0.02 0.02 --unit mm -o th.json
        """
    )

    # Required arguments
    parser.add_argument(
        'input_path',
        help='TIFF stack, or directory containing slice images'
    )

    # Output options
    parser.add_argument(
        '--output', '-o',
        help='Output file path for results (JSON, CSV, or Excel)',
        required=True
    )

    parser.add_argument(
        '--file-pattern',
        default='*.bmp',
        help='Glob pattern of slice files when input is a directory (default: *.bmp)'
    )

    # Analysis parameters
    parser.add_argument(
        '--measures',
        nargs='+',
        choices=MEASURES,
        default=list(MEASURES),
        help='Measures to run (default: all)'
    )

    parser.add_argument(
        '--nth-point',
        type=int,
        default=DEFAULT_NTH_POINT,
        help='Voxels along each branch to sample for angles, -1 for vertex to vertex (default: 0)'
    )

    parser.add_argument(
        '--volume-algorithm',
        choices=['voxel', 'surface'],
        default='voxel',
        help='Volume fraction algorithm (default: voxel)'
    )

    parser.add_argument(
        '--surface-resampling',
        type=int,
        default=DEFAULT_SURFACE_RESAMPLING,
        help=f'Marching cubes step size (default: {DEFAULT_SURFACE_RESAMPLING})'
    )

    parser.add_argument(
        '--no-mask',
        action='store_true',
        help='Do not mask thickness maps to the measured phase'
    )

    parser.add_argument(
        '--spacing',
        nargs=3,
        type=float,
        metavar=('Z', 'Y', 'X'),
        default=[1.0, 1.0, 1.0],
        help='Voxel size (default: 1 1 1)'
    )

    parser.add_argument(
        '--unit',
        default='pixel',
        help='Unit of the voxel size (default: pixel)'
    )

    parser.add_argument(
        '--threshold',
        type=float,
        help='Threshold for grayscale input (default: Otsu)'
    )

    # Visualization options
    parser.add_argument(
        '--visualize',
        action='store_true',
        help='Create visualizations'
    )

    parser.add_argument(
        '--save-plots',
        help='Directory to save plot images and the skeleton graph'
    )

    parser.add_argument(
        '--save-maps',
        help='Directory to save the thickness maps as TIFF stacks'
    )

    # Additional options
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    parser.add_argument(
        '--summary-report',
        action='store_true',
        help='Print summary report to console'
    )

    return parser.parse_args(argv)


def main(argv=None) -> None:
    """Main function."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    logger = logging.getLogger(__name__)

    if not os.path.exists(args.input_path):
        logger.error(f"Input path does not exist: {args.input_path}")
        sys.exit(1)

    try:
        analyzer = TrabecularAnalyzer(
            measures=tuple(args.measures),
            nth_point=args.nth_point,
            volume_algorithm=SURFACE if args.volume_algorithm == 'surface' else VOXEL,
            surface_resampling=args.surface_resampling,
            mask_thickness=not args.no_mask,
            spacing=tuple(args.spacing),
            unit=args.unit,
            threshold=args.threshold
        )

        logger.info(f"Starting analysis of {args.input_path}")
        load_kwargs = {'file_pattern': args.file_pattern} if os.path.isdir(args.input_path) else {}
        results = analyzer.run_complete_analysis(args.input_path, **load_kwargs)

        analyzer.save_results(args.output, format=format_from_path(args.output))

        if args.summary_report:
            print("\n" + analyzer.get_summary_report())

        if args.visualize:
            logger.info("Creating visualizations")
            visualize_results(results,
                              angles=analyzer.angles,
                              thickness_maps=analyzer.thickness_maps,
                              unit=args.unit,
                              save_dir=args.save_plots,
                              show=args.save_plots is None)
            if args.save_plots and analyzer.graphs:
                plot_skeleton_graphs(analyzer.graphs, os.path.join(args.save_plots, 'skeleton_graph.html'))

        if args.save_maps:
            for legend, thickness_map in analyzer.thickness_maps.items():
                map_path = os.path.join(args.save_maps, f'{analyzer.title}_{legend.replace(".", "_")}.tif')
                save_tiff_stack(thickness_map, map_path, spacing=tuple(args.spacing), unit=args.unit)

        logger.info("Analysis completed successfully!")

    except (ValueError, OSError) as e:
        logger.error(f"Analysis failed: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
