#!/usr/bin/env python3
"""Demo script for stereo tracking with odometry fusion and timing diagnostics.

Usage:
    python examples/tracking_demo.py [path/to/tracking.yaml]
"""

import logging
import sys

import numpy as np

from stereo_slam import DatasetReader, PointMap, RerunPublisher, Tracker, TrackingConfig


def main() -> None:
    """Run the tracking demo."""
    # Configuration
    dataset_path = "data/euroc/MH_01_easy/mav0"
    max_frames = None  # Set to int to limit frames
    config = TrackingConfig.from_yaml(sys.argv[1]) if len(sys.argv) > 1 else TrackingConfig()

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # Initialize
    print("Initializing tracking pipeline...")
    reader = DatasetReader(dataset_path)
    point_map = PointMap(merge_radius=config.merge_radius)
    publisher = RerunPublisher(point_map=point_map, app_name="stereo-slam-tracking")
    tracker = Tracker(
        transform_source=reader.transform_tree(),
        point_map=point_map,
        publisher=publisher,
        config=config,
    )

    print(f"Processing {len(reader)} frames...")
    print()

    print(
        f"{'Frame':>6} {'State':^16} {'Corr':>5} {'Inlr':>5} {'Fixed':>6} {'Map':>6} | "
        f"{'Frame':>7} {'Match':>6} {'PnP':>6} {'Total':>7} | "
        f"{'Position'}"
    )
    print("-" * 110)

    # Statistics
    replaced_count = 0
    discarded_count = 0
    drift = []
    timing_totals = {"frame": 0.0, "match": 0.0, "pnp": 0.0, "total": 0.0}

    for i, inp in enumerate(reader):
        if max_frames is not None and i >= max_frames:
            break

        result = tracker.process(inp)
        if not result.accepted:
            discarded_count += 1
            continue

        if result.fixed_frame_replaced:
            replaced_count += 1
        drift.append(np.linalg.norm(result.pose.position - result.odometry_pose.position))

        t = result.timing
        timing_totals["frame"] += t.frame_ms
        timing_totals["match"] += t.matching_ms
        timing_totals["pnp"] += t.pnp_ms
        timing_totals["total"] += t.total_ms

        # Print progress every 20 frames or on fixed frame change
        if i % 20 == 0 or result.fixed_frame_replaced:
            pos = result.pose.position
            print(
                f"{result.frame_id:6d} {result.state.value:^16} {result.num_matches:5d} "
                f"{result.num_inliers:5d} {result.fixed_frame_id:6d} "
                f"{tracker.point_map.num_points:6d} | "
                f"{t.frame_ms:6.1f}ms {t.matching_ms:5.1f}ms {t.pnp_ms:5.1f}ms "
                f"{t.total_ms:6.1f}ms | "
                f"[{pos[0]:7.2f}, {pos[1]:7.2f}, {pos[2]:7.2f}]"
            )

    # Final statistics
    n_frames = max(len(drift), 1)
    print()
    print("=" * 80)
    print("SUMMARY")
    print("=" * 80)
    print(f"Frames tracked:     {len(drift)}")
    print(f"Inputs discarded:   {discarded_count}")
    print(f"Fixed frame swaps:  {replaced_count}")
    print(f"Keyframes:          {tracker.graph.num_keyframes}")
    print(f"Map points:         {tracker.point_map.num_points}")
    if drift:
        print(f"Tracked vs odometry: mean {np.mean(drift):.3f} m, max {np.max(drift):.3f} m")
    print()
    print("Average timing per frame:")
    print(f"  Frame:     {timing_totals['frame']/n_frames:6.1f} ms")
    print(f"  Matching:  {timing_totals['match']/n_frames:6.1f} ms")
    print(f"  PnP:       {timing_totals['pnp']/n_frames:6.1f} ms")
    print(f"  Total:     {timing_totals['total']/n_frames:6.1f} ms")
    print()

    if tracker.current_pose is not None:
        pos = tracker.current_pose.position
        print(f"Final position: [{pos[0]:.2f}, {pos[1]:.2f}, {pos[2]:.2f}]")

    print()
    print("Done! Check Rerun viewer.")


if __name__ == "__main__":
    main()
