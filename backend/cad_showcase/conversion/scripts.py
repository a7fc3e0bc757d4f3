"""Driver programs written into the workspace and run by each backend's interpreter.

Both read `<input> <output>` from argv and meshing parameters from the
environment, exit 1 on bad usage and 2 on conversion failure.
"""

FREECAD_SCRIPT = '''
import os
import sys
import traceback


def main():
    if len(sys.argv) < 3:
        print("Missing arguments: input_path output_path", file=sys.stderr)
        sys.exit(1)

    input_path = sys.argv[-2]
    output_path = sys.argv[-1]
    linear_deflection = float(os.environ.get("LINEAR_DEFLECTION", "0.1"))
    angular_deflection = float(os.environ.get("ANGULAR_DEFLECTION", "0.3490658504"))

    try:
        import FreeCAD
        import MeshPart
        import Part

        shape = Part.Shape()
        shape.read(input_path)

        mesh = MeshPart.meshFromShape(
            Shape=shape,
            LinearDeflection=linear_deflection,
            AngularDeflection=angular_deflection,
            Relative=False,
        )
        mesh.write(output_path)
        if FreeCAD.ActiveDocument is not None:
            FreeCAD.closeDocument(FreeCAD.ActiveDocument.Name)
        print(f"Converted {input_path} to {output_path}")
    except Exception:
        traceback.print_exc()
        sys.exit(2)


if __name__ == "__main__":
    main()
'''.strip() + "\n"

CADQUERY_SCRIPT = '''
import os
import sys
import traceback


def load_iges(path):
    import cadquery as cq
    from OCP.IFSelect import IFSelect_RetDone
    from OCP.IGESControl import IGESControl_Reader

    reader = IGESControl_Reader()
    if reader.ReadFile(path) != IFSelect_RetDone:
        raise ValueError(f"Could not read IGES file {path}")
    reader.TransferRoots()
    return cq.Workplane("XY").add(cq.Shape.cast(reader.OneShape()))


def main():
    if len(sys.argv) < 3:
        print("Missing arguments: input_path output_path", file=sys.stderr)
        sys.exit(1)

    input_path = sys.argv[1]
    output_path = sys.argv[2]
    tolerance = float(os.environ.get("TOLERANCE", "0.1"))
    angular_tolerance = float(os.environ.get("ANGULAR_TOLERANCE", "0.3490658504"))

    try:
        from cadquery import exporters, importers

        ext = os.path.splitext(input_path)[1].lower()
        if ext in (".step", ".stp"):
            model = importers.importStep(input_path)
        elif ext in (".iges", ".igs"):
            model = load_iges(input_path)
        else:
            raise ValueError(f"Unsupported CAD extension {ext}")

        exporters.export(
            model,
            output_path,
            exporters.ExportTypes.STL,
            tolerance=tolerance,
            angularTolerance=angular_tolerance,
        )
        print(f"Converted {input_path} to {output_path}")
    except Exception:
        traceback.print_exc()
        sys.exit(2)


if __name__ == "__main__":
    main()
'''.strip() + "\n"
