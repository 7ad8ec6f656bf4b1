#!/usr/bin/env python3
"""
PrintGeo - Map to STL
Web service turning contour, building, road, water and GPX data into printable terrain solids.
"""

import os
import tempfile
import time
import uuid
from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

from .utils.app_config import GenerationOptions, get_cors_origins, get_max_resolution, parse_env_bool
from .utils.features import FeatureSet
from .utils.gpx_parser import GpxParseError, parse_gpx
from .utils.mesh_generator import MeshGenerationError, export_to_stl, generate_mesh
from .utils.mesh_validator import MeshValidator
from .utils.projection import BoundingBox

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": get_cors_origins()}})

# Configuration
EXPORT_FOLDER = os.getenv('PRINTGEO_EXPORT_FOLDER', os.path.join(tempfile.gettempdir(), 'printgeo_exports'))
ALLOWED_EXTENSIONS = {'gpx'}
CLEANUP_MAX_AGE_SECONDS = int(os.getenv('PRINTGEO_FILE_TTL_SECONDS', str(24 * 3600)))

app.config['EXPORT_FOLDER'] = EXPORT_FOLDER
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max file size

os.makedirs(EXPORT_FOLDER, exist_ok=True)


def cleanup_old_files(directory, max_age_seconds):
    """Remove files older than `max_age_seconds` from a directory."""
    now = time.time()
    try:
        for entry in os.scandir(directory):
            if not entry.is_file():
                continue
            age = now - entry.stat().st_mtime
            if age > max_age_seconds:
                os.remove(entry.path)
    except OSError as e:
        print(f"[WARN] Cleanup failed for {directory}: {e}")


def build_unique_path(directory, original_filename, required_ext):
    """Build unique storage path while preserving user-facing download name."""
    sanitized = secure_filename(original_filename) or f"printgeo_model.{required_ext}"
    if not sanitized.endswith(f".{required_ext}"):
        sanitized = f"{sanitized}.{required_ext}"
    stem = sanitized[:-(len(required_ext) + 1)]
    unique_name = f"{stem}_{uuid.uuid4().hex[:10]}.{required_ext}"
    return sanitized, os.path.join(directory, unique_name)


def allowed_file(filename):
    """Check if file has allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


@app.route('/api/upload', methods=['POST'])
def upload_gpx():
    """Handle GPX file upload."""
    if 'file' not in request.files:
        return jsonify({'error': 'No file provided'}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({'error': 'No file selected'}), 400

    if not allowed_file(file.filename):
        return jsonify({'error': 'Invalid file type. Only GPX files allowed'}), 400

    try:
        track = parse_gpx(file.read())
    except GpxParseError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        print(f"[ERROR] /api/upload failed: {str(e)}")
        return jsonify({'error': str(e)}), 500

    return jsonify({
        'success': True,
        'filename': secure_filename(file.filename),
        'data': track.to_dict()
    })


@app.route('/api/generate', methods=['POST'])
def generate_model():
    """Generate 3D model from provided data."""
    t_start = time.time()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400
    t_parse = time.time() - t_start
    print(f"[PERF] Request parsed in {t_parse:.3f}s")

    if not data.get('bounds'):
        return jsonify({'error': 'No bounds provided'}), 400

    try:
        bbox = BoundingBox.from_dict(data['bounds'])
        features = FeatureSet.from_dict(data.get('features', {}))
        options = GenerationOptions.from_dict(data.get('options', {}))
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400

    try:
        # Generate 3D mesh
        t_mesh_start = time.time()
        model = generate_mesh(features, bbox, options)
        t_mesh = time.time() - t_mesh_start
        print(f"[PERF] generate_mesh() took {t_mesh:.3f}s")
    except MeshGenerationError as e:
        print(f"[ERROR] /api/generate failed: {str(e)}")
        return jsonify({'error': str(e)}), 500

    t_validate_start = time.time()
    validation_result = MeshValidator().validate(model)
    t_validate = time.time() - t_validate_start
    print(f"[PERF] validate() took {t_validate:.3f}s")

    t_total = time.time() - t_start
    print(f"[PERF] Total /api/generate time: {t_total:.3f}s")
    timings = {
        'parse_seconds': round(t_parse, 4),
        'mesh_seconds': round(t_mesh, 4),
        'validation_seconds': round(t_validate, 4),
        'total_seconds': round(t_total, 4)
    }

    mesh_data = model.to_dict()
    return jsonify({
        'success': True,
        'mesh': mesh_data,
        'validation': validation_result,
        'timings': timings,
        'metadata': mesh_data['metadata']
    })


@app.route('/api/export/stl', methods=['POST'])
def export_stl():
    """Export model to STL format for 3D printing."""
    cleanup_old_files(app.config['EXPORT_FOLDER'], CLEANUP_MAX_AGE_SECONDS)
    data = request.get_json(silent=True) or {}
    mesh_data = data.get('mesh', {})
    filename = data.get('filename', 'printgeo_model.stl')

    if not mesh_data:
        return jsonify({'error': 'No mesh data provided'}), 400

    filename, filepath = build_unique_path(app.config['EXPORT_FOLDER'], filename, 'stl')

    try:
        export_to_stl(mesh_data, filepath)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        print(f"[ERROR] /api/export/stl failed: {str(e)}")
        return jsonify({'error': str(e)}), 500

    return send_file(
        filepath,
        mimetype='application/sla',
        as_attachment=True,
        download_name=filename
    )


@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'service': 'PrintGeo',
        'max_resolution': get_max_resolution()
    })


if __name__ == '__main__':
    debug_enabled = parse_env_bool(os.getenv('PRINTGEO_DEBUG'), default=False)
    app.run(host='0.0.0.0', port=5001, debug=debug_enabled)
