"""
Visualization utilities for trabecular morphometry results.
"""

import os
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import plotly.graph_objects as go
from typing import Dict, Optional, Sequence, Tuple
import logging

from .skeleton_graph import Graph

logger = logging.getLogger(__name__)

def plot_angle_distribution(angles: pd.DataFrame,
                            save_path: Optional[str] = None,
                            show: bool = True,
                            figsize: Tuple[int, int] = (12, 4)) -> None:
    """
    Histogram of all triple point angles and of the angles sorted per triple point.

    Args:
        angles: Table from TriplePointAngles.to_dataframe()
        save_path: Optional path to save the plot
        show: Open the plot window
        figsize: Figure size
    """
    if angles is None or angles.empty:
        logger.warning("No triple point angles to plot")
        return

    degrees = angles[['theta0_deg', 'theta1_deg', 'theta2_deg']].to_numpy()
    ordered = np.sort(degrees, axis=1)

    fig, axes = plt.subplots(1, 2, figsize=figsize)

    sns.histplot(degrees.ravel(), bins=36, binrange=(0, 180), color='steelblue', ax=axes[0])
    axes[0].set_xlabel('Angle (degrees)')
    axes[0].set_ylabel('Frequency')
    axes[0].set_title('Triple Point Angles')
    axes[0].grid(True, alpha=0.3)

    long = pd.DataFrame({
        'angle': ordered.ravel(),
        'rank': np.tile(['smallest', 'middle', 'largest'], len(ordered))
    })
    sns.histplot(data=long, x='angle', hue='rank', bins=36, binrange=(0, 180),
                 element='step', ax=axes[1])
    axes[1].set_xlabel('Angle (degrees)')
    axes[1].set_title('Angles by Rank')
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        logger.info(f"Plot saved to {save_path}")

    if show:
        plt.show()
    plt.close(fig)

def plot_thickness_map(thickness_map: np.ndarray,
                       title: str = "Local Thickness",
                       slice_index: Optional[int] = None,
                       unit: str = "pixel",
                       save_path: Optional[str] = None,
                       show: bool = True,
                       figsize: Tuple[int, int] = (12, 4)) -> None:
    """
    Plot one slice of a thickness map next to the thickness distribution.

    Args:
        thickness_map: 3D map from the Thickness command
        title: Plot title
        slice_index: Slice to show, the middle slice when None
        unit: Unit of the map values
        save_path: Optional path to save the plot
        show: Open the plot window
        figsize: Figure size
    """
    if slice_index is None:
        slice_index = thickness_map.shape[0] // 2
    values = thickness_map[thickness_map > 0]

    fig, axes = plt.subplots(1, 2, figsize=figsize)

    # "Fire" look of the thickness maps
    image = axes[0].imshow(thickness_map[slice_index], cmap='inferno', vmin=0,
                           vmax=values.max() if values.size else 1)
    axes[0].set_title(f'Slice {slice_index}')
    axes[0].axis('off')
    fig.colorbar(image, ax=axes[0], label=unit)

    if values.size:
        axes[1].hist(values, bins=50, alpha=0.7, color='orange')
    axes[1].set_xlabel(f'Thickness ({unit})')
    axes[1].set_ylabel('Voxels')
    axes[1].set_title('Thickness Distribution')
    axes[1].grid(True, alpha=0.3)

    plt.suptitle(title)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        logger.info(f"Plot saved to {save_path}")

    if show:
        plt.show()
    plt.close(fig)

def plot_skeleton_graphs(graphs: Sequence[Graph],
                         output_path: str = "skeleton_graph.html") -> None:
    """
    Interactive 3D view of skeleton graphs with triple points highlighted.

    Args:
        graphs: Graphs from the graph extractor
        output_path: Path to save the HTML visualization
    """
    # Branches
    edge_x, edge_y, edge_z = [], [], []
    for graph in graphs:
        for edge in graph.edges:
            start = graph.vertex_centroid(edge.v1)
            end = graph.vertex_centroid(edge.v2)
            path = [start] + [tuple(p) for p in edge.slabs] + [end]
            edge_x += [p[0] for p in path] + [None]
            edge_y += [p[1] for p in path] + [None]
            edge_z += [p[2] for p in path] + [None]
    edge_trace = go.Scatter3d(
        x=edge_x, y=edge_y, z=edge_z,
        mode='lines',
        line=dict(width=2, color='lightgray'),
        name='Branches'
    )

    # Vertices
    vertices, triple_points = [], []
    for graph in graphs:
        for index, vertex in enumerate(graph.vertices):
            target = triple_points if vertex.degree == 3 else vertices
            target.append(graph.vertex_centroid(index))
    vertices = np.array(vertices).reshape(-1, 3)
    triple_points = np.array(triple_points).reshape(-1, 3)

    vertex_trace = go.Scatter3d(
        x=vertices[:, 0], y=vertices[:, 1], z=vertices[:, 2],
        mode='markers',
        marker=dict(size=2, color='blue'),
        name='Vertices'
    )
    triple_trace = go.Scatter3d(
        x=triple_points[:, 0], y=triple_points[:, 1], z=triple_points[:, 2],
        mode='markers',
        marker=dict(size=4, color='red'),
        name='Triple Points'
    )

    fig = go.Figure(data=[edge_trace, vertex_trace, triple_trace])
    fig.update_layout(
        scene=dict(
            xaxis=dict(visible=False),
            yaxis=dict(visible=False),
            zaxis=dict(visible=False),
            aspectmode='data'
        ),
        title="Skeleton Graphs",
        showlegend=True
    )
    fig.write_html(output_path)
    logger.info(f"Skeleton graph saved to {output_path}")

def visualize_results(results: Dict,
                      angles: Optional[pd.DataFrame] = None,
                      thickness_maps: Optional[Dict[str, np.ndarray]] = None,
                      unit: str = "pixel",
                      save_dir: Optional[str] = None,
                      show: bool = True) -> None:
    """
    Create all plots for an analysis run.

    Args:
        results: Results from TrabecularAnalyzer
        angles: Triple point table of the run
        thickness_maps: Thickness maps keyed by measure (Tb.Th, Tb.Sp)
        unit: Unit of the thickness maps
        save_dir: Directory to save plots
        show: Open the plot windows
    """
    if save_dir:
        os.makedirs(save_dir, exist_ok=True)

    if 'triple_point_angles' in results:
        save_path = os.path.join(save_dir, 'triple_point_angles.png') if save_dir else None
        plot_angle_distribution(angles, save_path=save_path, show=show)

    for legend, thickness_map in (thickness_maps or {}).items():
        save_path = os.path.join(save_dir, f'{legend.replace(".", "_")}.png') if save_dir else None
        plot_thickness_map(thickness_map, title=legend, unit=unit, save_path=save_path, show=show)

    logger.info("Visualization completed")
