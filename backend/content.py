"""Static pages served to the public site and the privacy modal."""
from typing import Dict, List, Optional

from schemas import ContentPage, ContentSection

EVENT_NAME = "Kumaraguru MUN 2025"


def _page(slug: str, title: str, last_updated: str, sections: List[tuple]) -> ContentPage:
    return ContentPage(
        slug=slug,
        title=title,
        last_updated=last_updated,
        sections=[ContentSection(title=heading, body=list(items)) for heading, items in sections],
    )


PRIVACY_POLICY = _page(
    "privacy",
    f"Privacy Policy - {EVENT_NAME}",
    "September 2024",
    [
        ("1. Information We Collect", (
            "Personal information (name, email, phone number, institution details)",
            "Academic information (grade, MUN experience, committee preferences)",
            "Identity documents and resumes for verification purposes",
            "Payment information processed securely through Razorpay",
        )),
        ("2. How We Use Your Information", (
            "To process your registration and payment",
            "To communicate conference updates and important information",
            "To assign committees and portfolios based on preferences",
            "To provide certificates and awards",
            "To improve our services and conference experience",
        )),
        ("3. Information Sharing", (
            "We do not sell, trade, or rent your personal information to third parties",
            "Information may be shared with committee chairs for allocation purposes",
            "Payment information is processed securely by Razorpay",
            "We may share information if required by law or to protect our rights",
        )),
        ("4. Data Security", (
            "All data is encrypted and stored securely",
            "Access to personal information is restricted to authorized personnel",
            "Regular security audits are conducted",
            "Payment information is processed through secure, PCI-compliant systems",
        )),
        ("5. Your Rights", (
            "You can request access to your personal information",
            "You can request correction of inaccurate information",
            "You can request deletion of your information (subject to legal requirements)",
            "You can opt out of non-essential communications",
        )),
        ("6. Data Retention", (
            "Registration data is retained for the duration of the conference and post-conference activities",
            "Payment records are retained as required by law",
            "Academic records may be retained for future reference",
            "You can request data deletion after the conference",
        )),
        ("7. Contact Information", (
            "Email: privacy@kumaragurumun.com",
            "Address: Kumaraguru College of Technology, Coimbatore",
        )),
    ],
)

DELEGATE_GUIDELINES = _page(
    "guidelines",
    f"Delegate Guidelines - {EVENT_NAME}",
    "September 2024",
    [
        ("1. Registration and Participation", (
            "All delegates must complete the registration process and submit required documents",
            "Registration fees must be paid before the deadline to secure participation",
            "Delegates must attend all committee sessions as per the schedule",
            "Late arrivals may result in deduction of participation marks",
        )),
        ("2. Delegations", (
            "Colleges: a minimum of 12 delegates is required, with at least two delegates per committee",
            "Colleges: with 14-20 delegates there must be at least one delegate per committee",
            "Colleges: for 20 or more delegates, committee restrictions do not apply",
            "Schools: a minimum of 10 delegates",
        )),
        ("3. Code of Conduct", (
            "Maintain professional behavior throughout the conference",
            "Respect fellow delegates, chairs, and organizing committee members",
            "Use appropriate language and maintain decorum during sessions",
            "Follow the dress code as specified in the conference guidelines",
        )),
        ("4. Academic Integrity", (
            "All position papers must be original work",
            "Plagiarism will result in immediate disqualification",
            "Delegates must represent their assigned country accurately",
            "Research must be thorough and well-documented",
        )),
        ("5. Technology and Communication", (
            "Use of mobile phones during sessions is prohibited",
            "Laptops may be used only for research and note-taking",
            "Social media posts should be respectful and professional",
            "Follow the official communication channels for updates",
        )),
        ("6. Awards and Recognition", (
            "Awards will be given based on performance, research, and participation",
            "Judging criteria will be communicated at the beginning of sessions",
            "All decisions by the chair and judges are final",
            "Certificates will be provided to all participants",
        )),
        ("7. Emergency Procedures", (
            "Follow instructions from organizing committee during emergencies",
            "Emergency contact numbers will be provided at registration",
            "Medical assistance will be available on-site",
            "Report any incidents immediately to the organizing committee",
        )),
    ],
)

TERMS_OF_SERVICE = _page(
    "terms",
    "Terms of Service",
    "September 2024",
    [
        ("Availability", ("This page is currently unavailable.",)),
    ],
)

PAGES: Dict[str, ContentPage] = {
    page.slug: page for page in (PRIVACY_POLICY, DELEGATE_GUIDELINES, TERMS_OF_SERVICE)
}


def get_page(slug: str) -> Optional[ContentPage]:
    return PAGES.get(slug)
