"""Demo task collection loaded when ``TASKFLOW_LOAD_SAMPLE_DATA`` is set."""

from __future__ import annotations

from typing import Any, Dict, List

SAMPLE_TASKS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "title": "Design new landing page",
        "description": "Create a modern, responsive landing page for the new product launch",
        "dueDate": "2024-01-15T10:00",
        "priority": "HIGH",
        "assignee": "Sarah Johnson",
        "status": "IN_PROGRESS",
        "category": "DESIGN",
        "tags": ["ui/ux", "responsive", "landing"],
        "estimatedHours": 16,
        "actualHours": 8,
        "progress": 60,
        "createdAt": "2024-01-10T09:00:00Z",
        "updatedAt": "2024-01-12T14:30:00Z",
        "comments": [
            {
                "id": "c1",
                "text": "Initial wireframes completed",
                "author": "Sarah Johnson",
                "date": "2024-01-11T10:00:00Z",
            }
        ],
    },
    {
        "id": "2",
        "title": "Implement user authentication",
        "description": "Add secure login/logout functionality with JWT tokens",
        "dueDate": "2024-01-20T17:00",
        "priority": "URGENT",
        "assignee": "Mike Chen",
        "status": "TODO",
        "category": "DEVELOPMENT",
        "tags": ["backend", "security", "auth"],
        "estimatedHours": 24,
        "createdAt": "2024-01-08T11:00:00Z",
        "updatedAt": "2024-01-08T11:00:00Z",
        "dependencies": ["1"],
    },
    {
        "id": "3",
        "title": "Write API documentation",
        "description": "Document all REST API endpoints with examples",
        "dueDate": "2024-01-18T16:00",
        "priority": "MEDIUM",
        "assignee": "Alex Rivera",
        "status": "REVIEW",
        "category": "DEVELOPMENT",
        "tags": ["documentation", "api"],
        "estimatedHours": 12,
        "actualHours": 10,
        "createdAt": "2024-01-09T13:00:00Z",
        "updatedAt": "2024-01-13T16:00:00Z",
    },
    {
        "id": "4",
        "title": "Set up CI/CD pipeline",
        "description": "Configure automated testing and deployment",
        "dueDate": "2024-01-25T12:00",
        "priority": "LOW",
        "assignee": "David Kim",
        "status": "DONE",
        "category": "DEVELOPMENT",
        "tags": ["devops", "automation"],
        "estimatedHours": 8,
        "actualHours": 6,
        "createdAt": "2024-01-05T08:00:00Z",
        "updatedAt": "2024-01-14T10:00:00Z",
    },
    {
        "id": "5",
        "title": "Marketing campaign planning",
        "description": "Plan Q1 marketing strategy and campaigns",
        "dueDate": "2024-01-30T18:00",
        "priority": "MEDIUM",
        "assignee": "Emma Wilson",
        "status": "IN_PROGRESS",
        "category": "MARKETING",
        "tags": ["strategy", "campaigns", "q1"],
        "estimatedHours": 20,
        "actualHours": 5,
        "progress": 25,
        "createdAt": "2024-01-12T14:00:00Z",
        "updatedAt": "2024-01-14T09:00:00Z",
        "recurring": {"type": "monthly", "interval": 1, "endDate": "2024-12-31T23:59"},
    },
]


def sample_tasks() -> List[Dict[str, Any]]:
    """Fresh copies of the demo records."""
    return [
        {key: (list(value) if isinstance(value, list) else value) for key, value in record.items()}
        for record in SAMPLE_TASKS
    ]
