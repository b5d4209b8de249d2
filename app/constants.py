SEMESTER_OPTIONS = [{"value": n, "label": f"Semester {n}"} for n in range(1, 7)]

CATEGORY_OPTIONS = [
    {"value": "notes", "label": "Notes"},
    {"value": "assignments", "label": "Assignments"},
    {"value": "papers", "label": "Question Papers"},
    {"value": "videos", "label": "Video Lectures"},
    {"value": "code", "label": "Code Examples"},
]

SUBJECTS_BY_SEMESTER = {
    1: [
        "C Programming",
        "Computer Fundamentals",
        "Mathematics I",
        "English Communication",
        "Environmental Studies",
        "Digital Computer Fundamentals",
    ],
    2: [
        "C++ Programming",
        "Data Structures",
        "Mathematics II",
        "Digital Electronics",
        "Financial Accounting",
        "Computer System Architecture",
    ],
    3: [
        "Java Programming",
        "Database Management System",
        "Computer Networks",
        "Web Technologies",
        "Software Engineering",
        "Operating Systems",
    ],
    4: [
        "Advanced Java",
        "System Analysis & Design",
        "Python Programming",
        "Computer Graphics",
        "Management Information Systems",
        "Mobile Application Development",
    ],
    5: [
        "Artificial Intelligence",
        "Cloud Computing",
        "Cyber Security",
        "Project Management",
        "E-Commerce",
        "Data Mining",
    ],
    6: [
        "Machine Learning",
        "Internet of Things",
        "Blockchain Technology",
        "Major Project",
        "Industrial Training",
        "Entrepreneurship Development",
    ],
}

# MIME টাইপ থেকে দেখানোর লেবেল (ছবি আপলোড হয় কিন্তু লেবেল নেই)
ALLOWED_FILE_TYPES = {
    "application/pdf": "PDF",
    "application/msword": "DOC",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "DOCX",
    "application/vnd.ms-powerpoint": "PPT",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "PPTX",
    "video/mp4": "MP4",
    "video/webm": "WEBM",
    "text/plain": "TXT",
    "application/zip": "ZIP",
    "application/x-rar-compressed": "RAR",
}

UPLOAD_MIME_TYPES = list(ALLOWED_FILE_TYPES) + ["image/jpeg", "image/png", "image/gif"]

MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB

DEFAULT_PAGINATION_LIMIT = 12
DEFAULT_SEARCH_LIMIT = 20
DEFAULT_DOWNLOADS_LIMIT = 50
RECENT_UPLOADS_LIMIT = 5
POPULAR_SUBJECTS_LIMIT = 5

APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Access study materials, notes, assignments, and resources for all BCA semesters"
