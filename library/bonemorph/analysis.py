"""
Main analysis module running the trabecular morphometry measures on one volume.
"""

import os
import json
import math
import numpy as np
import pandas as pd
import logging
from typing import Dict, Optional, Tuple

from .image_check import check_image, is_binary
from .results import ResultsTable, json_default, save_dataframe
from .roi import RoiManager
from .thickness import Thickness
from .triple_point_angles import DEFAULT_NTH_POINT, TriplePointAngles
from .volume_fraction import VOXEL, VolumeFraction
from .volume_loader import binarize, get_volume_info, load_volume

logger = logging.getLogger(__name__)

MEASURES = ('thickness', 'spacing', 'volume_fraction', 'triple_point_angles')


class TrabecularAnalyzer:
    """
    Main class for trabecular bone morphometry of a binary micro-CT volume.
    """

    def __init__(self,
                 measures: Tuple[str, ...] = MEASURES,
                 nth_point: int = DEFAULT_NTH_POINT,
                 volume_algorithm: int = VOXEL,
                 surface_resampling: int = 6,
                 mask_thickness: bool = True,
                 spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0),
                 unit: str = "pixel",
                 threshold: Optional[float] = None,
                 volume: np.ndarray = None):
        """
        Initialize the analyzer.

        Args:
            measures: Which of MEASURES to run
            nth_point: Branch sampling distance for the triple point angles
            volume_algorithm: VOXEL or SURFACE for the volume fraction
            surface_resampling: Marching cubes step size
            mask_thickness: Zero thickness maps outside the measured phase
            spacing: (z, y, x) voxel size
            unit: Unit of the voxel size
            threshold: Threshold used to binarize grayscale input, Otsu when None
            volume: Already loaded binary volume
        """
        unknown = set(measures) - set(MEASURES)
        if unknown:
            raise ValueError(f"Unknown measures: {sorted(unknown)}")
        self.measures = tuple(measures)
        self.nth_point = nth_point
        self.volume_algorithm = volume_algorithm
        self.surface_resampling = surface_resampling
        self.mask_thickness = mask_thickness
        self.spacing = tuple(spacing)
        self.unit = unit
        self.threshold = threshold
        self.volume = volume
        self.title = "volume"
        self.roi_manager: Optional[RoiManager] = None
        self.table = ResultsTable()
        self.angles: Optional[pd.DataFrame] = None
        self.graphs = None
        self.thickness_maps: Dict[str, np.ndarray] = {}
        self.results = {}

    def load_data(self, path: str, binarize_input: bool = True, **kwargs) -> None:
        """
        Load a slice directory or TIFF stack.

        Args:
            path: Directory of slices or TIFF file
            binarize_input: Threshold non-binary data instead of rejecting it
            **kwargs: Additional arguments for load_image_stack
        """
        logger.info(f"Loading data from {path}")
        volume = load_volume(path, **kwargs)
        self.title = os.path.splitext(os.path.basename(os.path.normpath(path)))[0]

        if binarize_input and not is_binary(volume):
            logger.info("Input is not binary, thresholding")
            volume = binarize(volume, self.threshold)

        self.volume = volume
        volume_info = get_volume_info(self.volume)
        logger.info(f"Volume loaded: {volume_info}")
        self.results['volume_info'] = volume_info

    def measure_thickness(self) -> None:
        """Tb.Th and/or Tb.Sp of the loaded volume."""
        do_thickness = 'thickness' in self.measures
        do_spacing = 'spacing' in self.measures
        if not (do_thickness or do_spacing):
            return

        thickness = Thickness(do_thickness=do_thickness,
                              do_spacing=do_spacing,
                              mask_thickness=self.mask_thickness,
                              use_roi=self.roi_manager is not None,
                              spacing=self.spacing,
                              unit=self.unit)
        thickness.set_image(self.volume, self.title)
        if self.roi_manager is not None:
            thickness.set_roi_manager(self.roi_manager)

        self.table.update(thickness.run())
        self.thickness_maps = thickness.result_maps
        self.results['thickness'] = thickness.result_stats

    def measure_volume_fraction(self) -> None:
        volume_fraction = VolumeFraction(volume_algorithm=self.volume_algorithm,
                                         surface_resampling=self.surface_resampling,
                                         spacing=self.spacing,
                                         unit=self.unit)
        volume_fraction.set_image(self.volume, self.title)
        if self.roi_manager is not None:
            volume_fraction.set_roi_manager(self.roi_manager)

        self.table.update(volume_fraction.run())
        self.results['volume_fraction'] = volume_fraction.results

    def measure_triple_point_angles(self) -> None:
        analysis = TriplePointAngles(nth_point=self.nth_point)
        analysis.set_input_image(self.volume)
        angle_sets = analysis.calculate_triple_point_angles()

        self.graphs = analysis.graphs
        self.angles = analysis.to_dataframe()
        degrees = self.angles[['theta0_deg', 'theta1_deg', 'theta2_deg']].to_numpy().ravel()
        self.results['triple_point_angles'] = {
            'nth_point': self.nth_point,
            'skeletons': len(angle_sets),
            'triple_points': int(sum(len(a) for a in angle_sets)),
            'mean_angle_deg': float(np.nanmean(degrees)) if degrees.size else math.nan,
            'std_angle_deg': float(np.nanstd(degrees)) if degrees.size else math.nan,
            'angles': angle_sets
        }

    def run_complete_analysis(self, path: str = None, **kwargs) -> Dict:
        """
        Run the selected measures.

        Args:
            path: Data to load; the volume given at construction is used when None
            **kwargs: Additional arguments for loading

        Returns:
            Dictionary with complete analysis results
        """
        logger.info("Starting trabecular analysis")

        if path is not None:
            self.load_data(path, **kwargs)
        check_image(self.volume)
        if 'volume_info' not in self.results:
            self.results['volume_info'] = get_volume_info(self.volume)

        self.measure_thickness()
        if 'volume_fraction' in self.measures:
            self.measure_volume_fraction()
        if 'triple_point_angles' in self.measures:
            self.measure_triple_point_angles()

        self.results['analysis_metadata'] = {
            'measures': list(self.measures),
            'nth_point': self.nth_point,
            'volume_algorithm': self.volume_algorithm,
            'surface_resampling': self.surface_resampling,
            'spacing': list(self.spacing),
            'unit': self.unit
        }

        logger.info("Analysis completed successfully")
        return self.results

    def save_results(self, output_path: str, format: str = 'json') -> None:
        """
        Save analysis results to file.

        Args:
            output_path: Path to output file
            format: Output format ('json', 'csv', 'excel')
        """
        if not self.results:
            raise ValueError("No results to save. Run analysis first.")

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        if format == 'json':
            with open(output_path, 'w') as f:
                json.dump(self.results, f, indent=2, default=json_default)
        elif format == 'csv':
            save_dataframe(self.table.to_dataframe(), output_path, format='csv')
            if self.angles is not None:
                root, ext = os.path.splitext(output_path)
                save_dataframe(self.angles, f"{root}_angles{ext}", format='csv')
        elif format == 'excel':
            with pd.ExcelWriter(output_path) as writer:
                self.table.to_dataframe().to_excel(writer, sheet_name='Summary', index=False)
                if self.angles is not None:
                    self.angles.to_excel(writer, sheet_name='Triple points', index=False)
        else:
            raise ValueError(f"Unknown output format: {format}")

        logger.info(f"Results saved to {output_path}")

    def get_summary_report(self) -> str:
        """
        Generate a text summary report.

        Returns:
            Formatted summary report
        """
        if not self.results:
            return "No analysis results available."

        report = []
        report.append("=" * 50)
        report.append("TRABECULAR MORPHOMETRY SUMMARY REPORT")
        report.append("=" * 50)

        if 'volume_info' in self.results:
            vol_info = self.results['volume_info']
            report.append(f"\nVolume Information:")
            report.append(f"  Shape: {vol_info['shape']}")
            report.append(f"  Foreground fraction: {vol_info['foreground_fraction']:.3f}")

        for legend, stats in self.results.get('thickness', {}).items():
            report.append(f"\n{legend} ({self.unit}):")
            report.append(f"  Mean: {stats['mean']:.3f}")
            report.append(f"  Std Dev: {stats['std']:.3f}")
            report.append(f"  Max: {stats['max']:.3f}")

        if 'volume_fraction' in self.results:
            vf = self.results['volume_fraction']
            report.append(f"\nVolume Fraction:")
            report.append(f"  BV: {vf['bone_volume']:.1f}")
            report.append(f"  TV: {vf['total_volume']:.1f}")
            report.append(f"  BV/TV: {vf['volume_fraction']:.4f}")

        if 'triple_point_angles' in self.results:
            tp = self.results['triple_point_angles']
            report.append(f"\nTriple Point Angles:")
            report.append(f"  Skeletons: {tp['skeletons']}")
            report.append(f"  Triple points: {tp['triple_points']}")
            if tp['triple_points']:
                report.append(f"  Mean angle: {tp['mean_angle_deg']:.1f} deg")
                report.append(f"  Std angle: {tp['std_angle_deg']:.1f} deg")

        report.append("\n" + "=" * 50)
        return "\n".join(report)

def analyze_volume(volume: np.ndarray,
                   measures: Tuple[str, ...] = MEASURES,
                   nth_point: int = DEFAULT_NTH_POINT,
                   spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0)) -> Dict:
    """
    Convenience function for quick volume analysis.

    Args:
        volume: Binary 3D numpy array
        measures: Which measures to run
        nth_point: Branch sampling distance for the triple point angles
        spacing: (z, y, x) voxel size

    Returns:
        Analysis results dictionary
    """
    analyzer = TrabecularAnalyzer(measures=measures, nth_point=nth_point,
                                  spacing=spacing, volume=volume)
    return analyzer.run_complete_analysis()
