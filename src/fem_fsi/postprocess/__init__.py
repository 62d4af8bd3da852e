from .vtk import ResultWriter, fluid_output_data, solid_output_data, write_pvd_file

__all__ = ["ResultWriter", "fluid_output_data", "solid_output_data", "write_pvd_file"]
