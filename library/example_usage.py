#!/usr/bin/env python3
"""
Example usage of the bonemorph package.

This script demonstrates trabecular morphometry of a binary micro-CT stack:
thickness, spacing, volume fraction and triple point angles.
"""

import os
import numpy as np
import logging
from PIL import Image

from bonemorph import (
    TrabecularAnalyzer,
    TriplePointAngles,
    VolumeFraction,
    Roi,
    RoiManager,
    VERTEX_TO_VERTEX,
    load_image_stack,
    visualize_results
)
from bonemorph.volume_fraction import SURFACE

def setup_logging():
    """Setup basic logging."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

def example_basic_workflow(data_directory):
    """
    Example 1: Basic workflow using the TrabecularAnalyzer class.
    """
    print("=" * 60)
    print("EXAMPLE 1: Basic Workflow")
    print("=" * 60)

    analyzer = TrabecularAnalyzer(nth_point=3, spacing=(0.02, 0.02, 0.02), unit="mm")
    results = analyzer.run_complete_analysis(data_directory)

    print(analyzer.get_summary_report())

    analyzer.save_results("results.json", format='json')
    analyzer.save_results("results.xlsx", format='excel')

    visualize_results(results,
                      angles=analyzer.angles,
                      thickness_maps=analyzer.thickness_maps,
                      unit="mm",
                      save_dir="plots/",
                      show=False)

def example_triple_point_angles(data_directory):
    """
    Example 2: Triple point angles with different branch sampling.
    """
    print("\n" + "=" * 60)
    print("EXAMPLE 2: Triple Point Angles")
    print("=" * 60)

    volume = load_image_stack(data_directory)
    analysis = TriplePointAngles()
    analysis.set_input_image(volume)

    for nth_point in (VERTEX_TO_VERTEX, 0, 2, 5):
        analysis.set_nth_point(nth_point)
        angle_sets = analysis.calculate_triple_point_angles()
        degrees = np.degrees([theta for triples in angle_sets for triple in triples for theta in triple])
        label = "vertex to vertex" if nth_point == VERTEX_TO_VERTEX else f"nth point {nth_point}"
        if degrees.size:
            print(f"{label}: {degrees.size // 3} triple points, mean angle {np.nanmean(degrees):.1f} deg")
        else:
            print(f"{label}: no triple points")

def example_volume_fraction_in_roi(data_directory):
    """
    Example 3: Surface based BV/TV inside a region of interest.
    """
    print("\n" + "=" * 60)
    print("EXAMPLE 3: Volume Fraction in a ROI")
    print("=" * 60)

    volume = load_image_stack(data_directory)
    depth, height, width = volume.shape

    command = VolumeFraction(volume_algorithm=SURFACE, surface_resampling=1)
    command.set_image(volume, title="sample")
    command.set_roi_manager(RoiManager([Roi(0, 0, width // 2, height, name="left half")]))
    command.run()
    print(f"BV/TV of the left half: {command.results['volume_fraction']:.4f}")

def create_sample_data():
    """
    Create a sample binary stack (a lattice of rods) if no real data is available.
    """
    print("\n" + "=" * 60)
    print("Creating Sample Data")
    print("=" * 60)

    sample_dir = "sample_data"
    os.makedirs(sample_dir, exist_ok=True)

    volume = np.zeros((40, 100, 100), dtype=np.uint8)
    for c in range(10, 100, 30):
        volume[:, c - 2:c + 3, :] = 255
        volume[:, :, c - 2:c + 3] = 255
    volume[:5] = 0
    volume[-5:] = 0

    for i, img in enumerate(volume):
        Image.fromarray(img).save(os.path.join(sample_dir, f"slice_{i:03d}.bmp"))

    print(f"Created {sample_dir} directory with sample BMP files")
    return sample_dir

def main():
    """Run all examples."""
    setup_logging()

    print("bonemorph - Example Usage")
    print("=" * 60)

    data_directory = create_sample_data()

    example_basic_workflow(data_directory)
    example_triple_point_angles(data_directory)
    example_volume_fraction_in_roi(data_directory)

    print("\n" + "=" * 60)
    print("All examples completed!")
    print("=" * 60)
    print("\nTo use with your own data:")
    print("1. Pass your slice directory or TIFF stack to the examples")
    print("2. Or use the CLI: bonemorph /path/to/slices --output results.json")

if __name__ == '__main__':
    main()
