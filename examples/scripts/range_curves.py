"""
Stopping Power and Range Curves - Simple Example

Builds range tables for light ions in a CD2 target and plots stopping
power and range against energy.

This example checks:
    - Bethe-Bloch proton stopping with shell and density corrections
    - Effective-charge scaling to heavier ions
    - Range table integration and inversion

Expected results for protons in CD2 (ρ = 1.06 g/cm³):
    - Stopping power at 10 MeV: ~43 MeV cm²/g
    - Range at 10 MeV: ~1.2 mm
"""

import numpy as np
import matplotlib.pyplot as plt
from pathlib import Path

from reactmc.core.particle import Particle
from reactmc.physics.stopping_power import Material


def build_curves(material: Material, particle_names=('proton', 'deuteron', 'alpha', 'C-12'),
                 max_energy: float = 100.0):
    """
    Compute stopping power and range curves.

    Parameters:
        material: Stopping medium
        particle_names: Species to tabulate
        max_energy: Upper table energy [MeV]

    Returns:
        dict name -> (energy [MeV], stopping [MeV cm²/g], range [mm])
    """
    curves = {}
    for name in particle_names:
        particle = Particle.from_name(name)
        particle.set_material(material, max_energy, num_entries=200)
        energy = particle.table.energy[1:]
        stopping = np.array([material.stop_power(e, particle.Z, particle.mass)
                             for e in energy]) / (100.0 * material.density)
        curves[name] = (energy, stopping, particle.table.range[1:] * 1e3)

        print(f"  {name:10s}: R({max_energy:.0f} MeV) = {particle.table.max_range * 1e3:9.3f} mm, "
              f"round trip at 10 MeV: "
              f"{particle.table.get_energy(particle.table.get_range(10.0)):.4f} MeV")
    return curves


def plot_curves(curves, material_name: str, save_path=None):
    fig, (ax_s, ax_r) = plt.subplots(1, 2, figsize=(13, 5))

    for name, (energy, stopping, range_mm) in curves.items():
        ax_s.loglog(energy, stopping, linewidth=2, label=name)
        ax_r.loglog(energy, range_mm, linewidth=2, label=name)

    ax_s.set_xlabel('Energy [MeV]', fontsize=13)
    ax_s.set_ylabel('Stopping power [MeV cm²/g]', fontsize=13)
    ax_s.set_title(f'Stopping power in {material_name}', fontsize=14, fontweight='bold')
    ax_r.set_xlabel('Energy [MeV]', fontsize=13)
    ax_r.set_ylabel('Range [mm]', fontsize=13)
    ax_r.set_title(f'Range in {material_name}', fontsize=14, fontweight='bold')

    for ax in (ax_s, ax_r):
        ax.grid(True, which='both', alpha=0.3, linestyle='--')
        ax.legend(fontsize=11)

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=200, bbox_inches='tight')
        print(f"Figure saved: {save_path}")
    return fig


if __name__ == "__main__":
    cd2 = Material.from_name('CD2')
    print(f"\n{'='*70}")
    print(f"Range tables in {cd2}")
    print(f"{'='*70}")

    curves = build_curves(cd2)
    plot_curves(curves, cd2.name, save_path=Path(__file__).parent / 'range_curves_CD2.png')
