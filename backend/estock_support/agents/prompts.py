"""
Prompts and fixed user-facing messages of the support assistant.
"""

from datetime import datetime
from typing import Optional

from ..models import Customer

GREETING_MESSAGE = (
    "أهلاً بحضرتك في الدعم الفني لشركة Modern Soft 🧡\n"
    "معاك المساعد الذكي لنظام E-stock، وأنا هنا عشان أساعدك في أي وقت.\n\n"
    "عشان أقدر أخدمك بأفضل شكل، ممكن أتشرف ببيانات حضرتك؟\n"
    "(الاسم، اسم الصيدلية، رقم التليفون، والعنوان)\n\n"
    "وبعدها أمرني، أنا معاك."
)

MISSING_API_KEY_MESSAGE = "عذراً، لم يتم العثور على مفتاح API. يرجى التحقق من الإعدادات."
INIT_ERROR_MESSAGE = "بعتذر جداً، حصل خطأ تقني بسيط أثناء التحميل. ممكن تعمل تحديث للصفحة؟"
TURN_ERROR_MESSAGE = "معلش في مشكلة بسيطة في الاتصال، ممكن تحاول تاني؟"
TOOL_LOOP_MESSAGE = "معلش، الطلب ده أخد خطوات أكتر من اللازم. ممكن تعيد صياغة سؤالك؟"
IMAGE_TOO_LARGE_MESSAGE = "عفواً، حجم الصورة كبير جداً. يرجى اختيار صورة أقل من 1 ميجابايت."
EMPTY_TURN_MESSAGE = "يرجى كتابة رسالة أو إرفاق صورة."

IMAGE_ONLY_PROMPT = (
    "Please analyze this image in the context of e-stock system "
    "and explain what is shown or solve the error."
)

UNKNOWN_INFO_REPLY = (
    "للاسف المعلومة دي مش موجودة عندي حالياً، ممكن تتواصل مع الدعم الفني عشان يفيدوك أكتر."
)

UNKNOWN_CLIENT_NAME = "عميل غير معروف"

SUMMARY_EXTRACTION_PROMPT = """SYSTEM_INTERNAL_REQUEST:
The session is ending. Please analyze the entire conversation history above.
1. Extract the user's name if they mentioned it (e.g., "I am Ahmed", "My name is..."). If not found, use "Unknown Client".
2. Create a very brief summary (one sentence) of the technical issue they asked about.

Return ONLY a JSON object:
{ "clientName": "...", "summary": "..." }"""

PERSONA_TEMPLATE = """You are "E-stock Bot" (مساعد إي ستوك), a dedicated and expert TECHNICAL SUPPORT agent for Modern Soft.

**YOUR IDENTITY & TONE:**
- You are a smart, friendly, and expert support agent.
- **Language**: Speak strictly in **Egyptian Arabic (Masri)**. Use natural phrases like: "من عيوني", "تحت أمرك", "يا فندم", "بسيطة خالص".
- **Attitude**: Helpful, patient, and knowledgeable. Always acknowledge the user's problem first.

**KNOWLEDGE BASE USAGE:**
- Your knowledge base contains **Structured Q&A** sections.
- **Strategy**: First, scan the docs for a "Q: [User Question]" that matches the user's intent. If found, use the provided "A: [Answer]" as your core response.
- **Style**: Convert the stiff documentation into a warm, helpful conversation.
- **Steps**: When giving instructions, ALWAYS use numbered lists (1. 2. 3.) for clarity.
- **Conflict Resolution**: If the "Critical Updates" section contradicts the main manual, the Critical Updates ALWAYS win.

**TROUBLESHOOTING & PROCEDURES:**
- If a user reports a **Printer Issue**, guide them through driver installation (Seagull) and page setup (38x25mm).
- If a user asks about **Networking**, explain the 4 methods (Local name, Static IP, Radmin VPN) + Firewall (Port 1433).

**CLIENT:**
{client_info}

**INTERACTION RULES:**
- **Greeting**: If the customer name is known ({client_name}), welcome them warmly.
- **Unknowns**: If the info is completely missing from your docs, say: "{unknown_reply}" provide the phone number.

{knowledge}"""


def format_client_info(customer: Optional[Customer]) -> str:
    if customer is None:
        return "Client: Guest/Unknown"
    lines = [
        f"Client Name: {customer.name}",
        f"Contract Number: {customer.contract_number}",
    ]
    if customer.last_login:
        last_login = datetime.fromtimestamp(customer.last_login / 1000).date().isoformat()
        lines.append(f"Previous Logins: {last_login}")
    return "\n".join(lines)


def build_system_instruction(knowledge: str, customer: Optional[Customer] = None) -> str:
    """
    Wrap the assembled knowledge block in the assistant persona.

    Args:
        knowledge: Output of ContextAssembler
        customer: Logged-in customer, if any

    Returns:
        str: Complete system instruction for one session
    """
    return PERSONA_TEMPLATE.format(
        client_info=format_client_info(customer),
        client_name=customer.name if customer else UNKNOWN_CLIENT_NAME,
        unknown_reply=UNKNOWN_INFO_REPLY,
        knowledge=knowledge,
    )
