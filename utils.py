"""
Utility functions for the Workshop Participant Portal.
"""
import streamlit as st
import pandas as pd
import io
import base64
import os
import datetime
import logging
from collections import OrderedDict
import config
import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill
import plotly.express as px
import plotly.graph_objects as go
from models import normalize_phone

logger = logging.getLogger(__name__)

ROSTER_COLUMNS = ["Name", "Phone", "School", "Major", "Generation", "Gender"]
REQUIRED_ROSTER_COLUMNS = ["Name", "School", "Major", "Generation", "Gender"]
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

def configure_logging(level=None):
    """Configure the root logger. Later calls are no-ops once it has handlers."""
    logging.basicConfig(level=(level or config.LOG_LEVEL).upper(), format=config.LOG_FORMAT)

def create_roster_template():
    """Create and return a participant roster template Excel file."""
    if not os.path.exists(config.TEMPLATE_DIR):
        os.makedirs(config.TEMPLATE_DIR)

    template_path = os.path.join(config.TEMPLATE_DIR, "roster_template.xlsx")

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Participants"

    headers = [f"{col}*" if col in REQUIRED_ROSTER_COLUMNS else col for col in ROSTER_COLUMNS]

    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num)
        cell.value = header
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')
        cell.fill = PatternFill(start_color="DDDDDD", end_color="DDDDDD", fill_type="solid")

    example_data = [
        ["Kim Minji", "010-1234-5678", "Seoul National University", "Economics", "12", "F"],
        ["Lee Junho", "01098765432", "KAIST", "Physics", "12", "M"],
    ]

    for row_num, data_row in enumerate(example_data, 2):
        for col_num, value in enumerate(data_row, 1):
            ws.cell(row=row_num, column=col_num).value = value

    ws.cell(row=len(example_data) + 3, column=1).value = "* Required fields"
    ws.cell(row=len(example_data) + 4, column=1).value = "Note: participants confirm this phone number when they register."

    for col_num in range(1, len(headers) + 1):
        ws.column_dimensions[openpyxl.utils.get_column_letter(col_num)].width = 22

    wb.save(template_path)

    return template_path

def get_download_link(file_path, link_text):
    """Generate a download link for a file."""
    with open(file_path, 'rb') as f:
        data = f.read()

    b64 = base64.b64encode(data).decode()
    file_name = os.path.basename(file_path)
    mime_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    href = f'<a href="data:{mime_type};base64,{b64}" download="{file_name}">{link_text}</a>'

    return href

def dataframe_to_excel(df):
    """Convert a pandas DataFrame to an Excel file in memory."""
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, index=False, sheet_name="Data")

    return output.getvalue()

def _clean_columns(df):
    """Drop the required-field markers from uploaded headers."""
    df = df.copy()
    df.columns = [str(col).replace('*', '').strip() for col in df.columns]
    return df

def _is_blank(value):
    return value is None or pd.isna(value) or str(value).strip() == ''

def validate_uploaded_data(df, existing_names=()):
    """Validate an uploaded participant roster.

    Returns ``(is_valid, errors, warnings)``. Names already in the directory
    and names repeated within the file are errors, since sign-in looks
    participants up by exact name.
    """
    errors = []
    warnings = []
    df = _clean_columns(df)

    for col in REQUIRED_ROSTER_COLUMNS:
        if col not in df.columns:
            errors.append(f"Missing required column: {col}")

    if errors:
        return False, errors, warnings

    existing = {name.strip() for name in existing_names}
    seen = set()

    for idx, row in df.iterrows():
        for col in REQUIRED_ROSTER_COLUMNS:
            if _is_blank(row[col]):
                errors.append(f"Row {idx+2}: Missing required field '{col}'")

        if not _is_blank(row['Name']):
            name = str(row['Name']).strip()
            if name in existing:
                errors.append(f"Row {idx+2}: '{name}' is already in the directory")
            elif name in seen:
                errors.append(f"Row {idx+2}: '{name}' appears more than once in this file")
            seen.add(name)

        if 'Phone' in df.columns and not _is_blank(row['Phone']):
            phone = normalize_phone(row['Phone'])
            if not phone.isdigit() or len(phone) < 10:
                warnings.append(f"Row {idx+2}: Phone number '{row['Phone']}' may not be valid")
        elif 'Phone' in df.columns:
            warnings.append(f"Row {idx+2}: No phone number, this participant will not be able to register")

    return len(errors) == 0, errors, warnings

def _cell_text(value):
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()

def prepare_data_for_db(df):
    """Prepare an uploaded roster for insertion as a list of participant records."""
    df = _clean_columns(df)

    records = []
    for _, row in df.iterrows():
        records.append({
            'name': _cell_text(row.get('Name')),
            'phone_number': _cell_text(row.get('Phone')),
            'school': _cell_text(row.get('School')),
            'major': _cell_text(row.get('Major')),
            'generation': _cell_text(row.get('Generation')),
            'gender': _cell_text(row.get('Gender')),
        })

    return records

def participants_to_dataframe(identities):
    """Participant list as a DataFrame for display and export. Credentials are never included."""
    rows = [{
        'Name': i.name,
        'Phone': i.phone_number,
        'School': i.school,
        'Major': i.major,
        'Generation': i.generation,
        'Gender': i.gender,
        'Role': i.role or config.DEFAULT_ROLE,
        'Registered': 'Yes' if i.is_registered else 'No',
    } for i in identities]
    return pd.DataFrame(rows, columns=['Name', 'Phone', 'School', 'Major', 'Generation', 'Gender', 'Role', 'Registered'])

def filter_participants(identities, search=None, school=None, major=None):
    """Filter participants by a name/school/major search term and exact school and major."""
    term = (search or '').strip().casefold()
    result = []
    for identity in identities:
        if school and identity.school != school:
            continue
        if major and identity.major != major:
            continue
        if term:
            haystack = ' '.join(filter(None, [identity.name, identity.school, identity.major])).casefold()
            if term not in haystack:
                continue
        result.append(identity)
    return result

def group_events_by_date(events):
    """Events keyed by date, days in order and events ordered by position then start time."""
    grouped = OrderedDict()
    for event in sorted(events, key=lambda e: e.event_date):
        grouped.setdefault(event.event_date, []).append(event)
    for day in grouped:
        grouped[day].sort(key=lambda e: (e.order_index if e.order_index is not None else 0, e.start_time))
    return grouped

def format_event_date(date_str):
    """Format a schedule date as e.g. '14 Aug (Thu)'."""
    try:
        day = datetime.datetime.strptime(date_str, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return date_str
    return f"{day.day} {day.strftime('%b')} ({WEEKDAYS[day.weekday()]})"

def format_time(time_str):
    """Trim seconds from a database time value."""
    if not time_str:
        return "-"
    return str(time_str)[:5]

def format_timestamp(time_str):
    """Format a stored timestamp for display."""
    if not time_str:
        return "-"

    try:
        dt = datetime.datetime.fromisoformat(str(time_str).replace('Z', '+00:00'))
        return dt.strftime("%d %b %Y, %I:%M %p")
    except ValueError:
        return time_str

def create_chart(chart_type, data, title, x_label, y_label):
    """Create a chart using Plotly."""
    if chart_type == 'bar':
        fig = px.bar(data, x=x_label, y=y_label, title=title)
    elif chart_type == 'pie':
        fig = px.pie(data, names=x_label, values=y_label, title=title)
    elif chart_type == 'line':
        fig = px.line(data, x=x_label, y=y_label, title=title)
    else:
        fig = go.Figure()
        fig.update_layout(title=title)

    fig.update_layout(
        title_font=dict(size=24),
        xaxis_title=x_label,
        yaxis_title=y_label,
        template="plotly_white"
    )

    return fig

def apply_custom_css():
    """Apply custom CSS to the Streamlit app."""
    css = f"""
    <style>
        .stApp {{
            max-width: 1200px;
            margin: 0 auto;
        }}

        .stTabs [data-baseweb="tab-list"] {{
            gap: 8px;
        }}

        .stTabs [data-baseweb="tab"] {{
            height: 50px;
            white-space: pre-wrap;
            background-color: #f0f2f6;
            border-radius: 4px 4px 0px 0px;
            padding-top: 10px;
            padding-bottom: 10px;
        }}

        .stTabs [aria-selected="true"] {{
            background-color: #e0e0e0;
            border-bottom: 2px solid {config.PRIMARY_COLOR};
        }}

        .notice-card {{
            background-color: #e3f2fd;
            padding: 16px 20px;
            border-radius: 5px;
            border-left: 5px solid {config.PRIMARY_COLOR};
            margin-bottom: 16px;
        }}

        .notice-card.important {{
            background-color: #ffe0e0;
            border-left: 5px solid {config.DANGER_COLOR};
        }}

        .event-card {{
            padding: 12px 16px;
            border-radius: 5px;
            border-left: 4px solid {config.SECONDARY_COLOR};
            background-color: #fffaf0;
            margin-bottom: 10px;
        }}

        .event-time {{
            font-weight: 600;
            color: {config.PRIMARY_COLOR};
        }}
    </style>
    """
    st.markdown(css, unsafe_allow_html=True)

def resize_image(image_bytes, max_size_kb=config.MAX_PHOTO_SIZE_KB):
    """Resize and compress an image to a JPEG small enough for storage.

    Raises ``ValueError`` when the bytes are not a readable image.
    """
    from PIL import Image, UnidentifiedImageError

    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError("The file is not a readable image.") from e

    max_dimension = 1500
    width, height = image.size

    if width > max_dimension or height > max_dimension:
        if width > height:
            new_width = max_dimension
            new_height = int(height * (max_dimension / width))
        else:
            new_height = max_dimension
            new_width = int(width * (max_dimension / height))

        image = image.resize((new_width, new_height), Image.LANCZOS)
        logger.debug("Resized image from %sx%s to %sx%s", width, height, new_width, new_height)

    # JPEG has no alpha channel
    if image.mode != 'RGB':
        image = image.convert('RGB')

    output = io.BytesIO()
    quality = 85

    image.save(output, format='JPEG', quality=quality, optimize=True)

    while output.tell() > max_size_kb * 1024 and quality > 30:
        output = io.BytesIO()
        quality -= 10
        image.save(output, format='JPEG', quality=quality, optimize=True)

    result = output.getvalue()
    logger.debug("Image size %.1fKB -> %.1fKB at quality %s", len(image_bytes) / 1024, len(result) / 1024, quality)
    return result

def export_to_csv(df, filename="export.csv"):
    """Generate a download link for a DataFrame as CSV."""
    csv = df.to_csv(index=False)
    b64 = base64.b64encode(csv.encode('utf-8-sig')).decode()
    href = f'<a href="data:file/csv;base64,{b64}" download="{filename}">Download CSV</a>'
    return href

def export_to_excel(df, filename="export.xlsx"):
    """Generate a download link for a DataFrame as Excel."""
    b64 = base64.b64encode(dataframe_to_excel(df)).decode()
    href = f'<a href="data:application/vnd.openxmlformats-officedocument.spreadsheetml.sheet;base64,{b64}" download="{filename}">Download Excel</a>'
    return href

def show_action_error(error):
    """Show a portal error raised by a page action."""
    st.error(error.message)
