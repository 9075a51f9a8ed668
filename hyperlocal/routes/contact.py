# hyperlocal/routes/contact.py
from fastapi import APIRouter, Request, status

from hyperlocal.schemas.contact import ContactMessage
from hyperlocal.services.notifications import EmailKind

contact_router = APIRouter(tags=["Contact"])


@contact_router.post("", status_code=status.HTTP_202_ACCEPTED)
async def submit_contact(data: ContactMessage, request: Request):
    job = request.app.state.dispatcher.enqueue_email(EmailKind.CONTACT_FORM, data.model_dump())
    return {
        "message": "Thank you for reaching out. We will get back to you soon.",
        "job_id": job.id if job else None,
    }
